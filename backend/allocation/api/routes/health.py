from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from allocation.api.deps import SessionStore, get_session_store
from allocation.core.exceptions import RosterNotLoadedError

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready(store: SessionStore = Depends(get_session_store)) -> dict:
    try:
        summary = store.get().summary().model_dump()
    except RosterNotLoadedError:
        summary = None
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "roster_loaded": summary is not None,
        "roster": summary,
    }
