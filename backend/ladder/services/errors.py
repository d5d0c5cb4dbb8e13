"""Caller-visible tournament errors. None of these are retried internally."""


class TournamentError(Exception):
    """Base exception for tournament operations"""
    pass


class NotFoundError(TournamentError):
    """Session, tournament or match does not exist (or belongs elsewhere)"""
    pass


class InvalidStateError(TournamentError):
    """Tournament not ACTIVE, or match already complete"""
    pass


class InvalidInputError(TournamentError):
    """Tied score, too few attendees, or too few teams"""
    pass


class ConflictError(TournamentError):
    """Another tournament is already ACTIVE, or the session already has one"""
    pass
