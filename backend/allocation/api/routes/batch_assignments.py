from fastapi import APIRouter, Depends

from allocation.api.deps import get_session
from allocation.schemas.allocation import (
    AllocationSnapshot,
    AssignRoomRequest,
    AutoRoomSummary,
    BatchAllocationState,
    BatchAssignment,
    RoomAssignmentResult,
    RoomUsage,
    SetModeRequest,
    ValidationReport,
)
from allocation.services.session import AllocationSession

router = APIRouter()


@router.get("/batch-assignments", response_model=BatchAllocationState)
def get_batch_assignments(session: AllocationSession = Depends(get_session)):
    return session.batch_state()


@router.put("/batch-assignments/{batch_key}/{subject_code}/mode", response_model=BatchAssignment)
def set_mode(
    batch_key: str,
    subject_code: str,
    payload: SetModeRequest,
    session: AllocationSession = Depends(get_session),
):
    return session.set_mode(batch_key, subject_code, payload.mode)


@router.put("/batch-assignments/{batch_key}/{subject_code}/room", response_model=RoomAssignmentResult)
def assign_room(
    batch_key: str,
    subject_code: str,
    payload: AssignRoomRequest,
    session: AllocationSession = Depends(get_session),
):
    return session.assign_room(batch_key, subject_code, payload.room_id)


@router.delete("/batch-assignments/{batch_key}/{subject_code}/room", response_model=BatchAssignment)
def clear_room(batch_key: str, subject_code: str, session: AllocationSession = Depends(get_session)):
    return session.clear_room(batch_key, subject_code)


@router.post("/batch-assignments/auto", response_model=AutoRoomSummary)
def auto_assign_rooms(session: AllocationSession = Depends(get_session)):
    return session.auto_assign_rooms()


@router.post("/batch-assignments/reset", response_model=BatchAllocationState)
def reset_batch_assignments(session: AllocationSession = Depends(get_session)):
    session.reset_rooms()
    return session.batch_state()


@router.post("/batch-assignments/validation", response_model=ValidationReport)
def validate_batch_assignments(session: AllocationSession = Depends(get_session)):
    # Rebuilds the conflict list from the current rooms.
    return session.validate_rooms()


@router.get("/rooms/usage", response_model=list[RoomUsage])
def room_usage(session: AllocationSession = Depends(get_session)):
    return session.room_usage()


@router.get("/allocation/export", response_model=AllocationSnapshot)
def export_allocation(session: AllocationSession = Depends(get_session)):
    return session.export()
