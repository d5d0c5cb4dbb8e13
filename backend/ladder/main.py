import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ladder.database import init_db
from ladder.routes import tournaments

logger = logging.getLogger(__name__)

app = FastAPI(title="Ladder Tournament API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Ladder Tournament API started")


@app.get("/api/health")
def health_check():
    return {"app_name": "Ladder Tournament API", "status": "healthy"}
