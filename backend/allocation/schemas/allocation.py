from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class BatchMode(str, Enum):
    combined = "combined"
    separate = "separate"


class TeacherAssignment(BaseModel):
    teacher_id: str
    hours: int = Field(ge=1)
    is_priority: bool = False


class TeacherWorkload(BaseModel):
    teacher_id: str
    max_hours: int
    assigned: int
    remaining: int
    subjects: dict[str, int] = Field(default_factory=dict)


class AssignTeacherRequest(BaseModel):
    subject_code: str = Field(min_length=1, max_length=50)
    teacher_id: str = Field(min_length=1, max_length=100)
    hours: int | None = None


class AssignableSubject(BaseModel):
    code: str
    name: str
    hours: int
    can_assign: bool
    is_preferred: bool


class AutoAssignSummary(BaseModel):
    assigned_subjects: int
    unassigned_subjects: list[str] = Field(default_factory=list)


class BatchAssignment(BaseModel):
    batch_key: str
    subject_code: str
    teacher_id: str | None = None
    room_id: str | None = None
    mode: BatchMode


class SetModeRequest(BaseModel):
    mode: BatchMode


class AssignRoomRequest(BaseModel):
    room_id: str = Field(min_length=1, max_length=100)


class ConflictDetail(BaseModel):
    batch_key: str
    subject_code: str
    room_id: str
    reason: Literal["room_type_mismatch"] = "room_type_mismatch"
    message: str


class RoomAssignmentResult(BaseModel):
    assignment: BatchAssignment
    conflict: ConflictDetail | None = None


class CapacityViolation(BaseModel):
    batch_key: str
    subject_code: str
    room_id: str
    capacity: int
    required: int


class AutoRoomSummary(BaseModel):
    assigned_pairings: int
    unassigned_pairings: list[tuple[str, str]] = Field(default_factory=list)


class AllocationProgress(BaseModel):
    completed: int
    total: int
    percent: int


class RoomUsage(BaseModel):
    room_id: str
    room_type: str
    capacity: int
    assignment_count: int
    level: Literal["available", "low", "moderate", "high"]


class TeacherAllocationState(BaseModel):
    assignments: dict[str, list[TeacherAssignment]]
    workload: list[TeacherWorkload]
    unassigned_subjects: list[str]
    active_teachers: int
    progress: AllocationProgress


class BatchAllocationState(BaseModel):
    pairings: list[BatchAssignment]
    conflicts: list[ConflictDetail]
    progress: AllocationProgress


class ValidationReport(BaseModel):
    conflicts: list[ConflictDetail]
    capacity_violations: list[CapacityViolation]


class BatchSnapshotEntry(BaseModel):
    batch_key: str
    subject_code: str
    room_id: str | None
    mode: BatchMode
    teacher_id: str | None = None


class AllocationSnapshot(BaseModel):
    """Finalized assignments handed to persistence and the slot scheduler."""

    subjects: dict[str, list[TeacherAssignment]] = Field(default_factory=dict)
    batches: list[BatchSnapshotEntry] = Field(default_factory=list)


class RosterSummary(BaseModel):
    teachers: int
    subjects: int
    rooms: int
    divisions: int
    batches: int
