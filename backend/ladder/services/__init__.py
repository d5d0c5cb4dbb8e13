"""
Services Layer

Pure business logic services that:
- Accept domain inputs (IDs, sessions, etc.)
- Return domain outputs (models, dicts, etc.)
- Do NOT depend on HTTP request/response objects
- Do NOT commit unless they own the unit of work (TournamentService does)
"""
