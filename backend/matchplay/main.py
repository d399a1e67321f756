import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from matchplay.database import engine, init_db
from matchplay.routes import bracket, entrants, registrations, tournaments
from matchplay.services.reconciliation_service import (
    RECONCILE_INTERVAL_SECONDS,
    ReconciliationPoller,
    reconcile_all_tournaments,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Matchplay Bracket API")

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

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(entrants.router, prefix="/api", tags=["entrants"])
app.include_router(registrations.router, prefix="/api", tags=["registrations"])
app.include_router(bracket.router, prefix="/api", tags=["bracket"])


def _poller_enabled() -> bool:
    return os.getenv("RECONCILE_POLLER_ENABLED", "false").lower() in ("1", "true", "yes")


poller = ReconciliationPoller(
    lambda: reconcile_all_tournaments(lambda: Session(engine)),
    interval_seconds=RECONCILE_INTERVAL_SECONDS,
)


@app.on_event("startup")
def on_startup():
    init_db()  # imports models and creates tables
    if _poller_enabled():
        poller.start()
    else:
        logger.info("Reconciliation poller disabled (set RECONCILE_POLLER_ENABLED=true to enable)")


@app.on_event("shutdown")
def on_shutdown():
    if poller.is_running:
        poller.stop(timeout=RECONCILE_INTERVAL_SECONDS * 2)


@app.get("/api/health")
def health_check():
    return {
        "app_name": "Matchplay Bracket API",
        "status": "healthy",
        "reconciler_running": poller.is_running,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("matchplay.main:app", host="127.0.0.1", port=int(os.getenv("PORT", "8000")))
