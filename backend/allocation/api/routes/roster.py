from fastapi import APIRouter, Depends

from allocation.api.deps import SessionStore, get_session, get_session_store
from allocation.schemas.allocation import RosterSummary
from allocation.schemas.roster import Batch, Roster
from allocation.services.session import AllocationSession

router = APIRouter()


@router.put("/roster", response_model=RosterSummary)
def load_roster(payload: Roster, store: SessionStore = Depends(get_session_store)):
    # Re-ingestion replaces everything; derived assignments start empty again.
    return store.load(payload).summary()


@router.get("/batches", response_model=list[Batch])
def list_batches(session: AllocationSession = Depends(get_session)):
    return session.roster.batches
