from fastapi import APIRouter, Depends, status

from allocation.api.deps import get_session
from allocation.schemas.allocation import (
    AssignableSubject,
    AssignTeacherRequest,
    AutoAssignSummary,
    TeacherAllocationState,
    TeacherAssignment,
)
from allocation.services.session import AllocationSession

router = APIRouter()


@router.get("/teacher-assignments", response_model=TeacherAllocationState)
def get_teacher_assignments(session: AllocationSession = Depends(get_session)):
    return session.teacher_state()


@router.post("/teacher-assignments", response_model=TeacherAssignment, status_code=status.HTTP_201_CREATED)
def assign_teacher(payload: AssignTeacherRequest, session: AllocationSession = Depends(get_session)):
    return session.assign_teacher(payload.subject_code, payload.teacher_id, payload.hours)


@router.delete("/teacher-assignments/{subject_code}/{teacher_id}", response_model=TeacherAllocationState)
def unassign_teacher(subject_code: str, teacher_id: str, session: AllocationSession = Depends(get_session)):
    session.unassign_teacher(subject_code, teacher_id)
    return session.teacher_state()


@router.post("/teacher-assignments/{subject_code}/{teacher_id}/priority", response_model=TeacherAssignment | None)
def toggle_priority(subject_code: str, teacher_id: str, session: AllocationSession = Depends(get_session)):
    return session.toggle_priority(subject_code, teacher_id)


@router.post("/teacher-assignments/auto", response_model=AutoAssignSummary)
def auto_assign_teachers(session: AllocationSession = Depends(get_session)):
    return session.auto_assign_teachers()


@router.post("/teacher-assignments/reset", response_model=TeacherAllocationState)
def reset_teacher_assignments(session: AllocationSession = Depends(get_session)):
    session.reset_teachers()
    return session.teacher_state()


@router.get("/teachers/{teacher_id}/assignable-subjects", response_model=list[AssignableSubject])
def assignable_subjects(teacher_id: str, session: AllocationSession = Depends(get_session)):
    return session.assignable_subjects(teacher_id)
