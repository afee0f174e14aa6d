from __future__ import annotations

import logging
from threading import RLock

from allocation.core.config import Settings, get_settings
from allocation.schemas.allocation import (
    AllocationSnapshot,
    AssignableSubject,
    AutoAssignSummary,
    AutoRoomSummary,
    BatchAllocationState,
    BatchAssignment,
    BatchMode,
    BatchSnapshotEntry,
    RoomAssignmentResult,
    RoomUsage,
    RosterSummary,
    TeacherAllocationState,
    TeacherAssignment,
    ValidationReport,
)
from allocation.schemas.roster import Roster
from allocation.services.room_allocator import RoomBatchAllocator
from allocation.services.teacher_allocator import TeacherLoadAllocator

logger = logging.getLogger(__name__)


class AllocationSession:
    """Owns one roster snapshot and the two allocators built over it.

    Every mutation and every composite read holds the session lock, so a
    state response never mixes values from before and after a change.
    Teacher changes are pushed to the room allocator as the informational
    teacher reference of each pairing.
    """

    def __init__(self, roster: Roster, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._lock = RLock()
        self.load(roster)

    def load(self, roster: Roster) -> RosterSummary:
        with self._lock:
            self.roster = roster
            self.teachers = TeacherLoadAllocator(
                roster,
                per_subject_cap=self.settings.max_hours_per_teacher_per_subject,
            )
            self.rooms = RoomBatchAllocator(roster, lead_teachers=self.teachers.lead_teachers())
            summary = self.summary()
        logger.info(
            "Loaded roster: %d teachers, %d subjects, %d rooms, %d batches",
            summary.teachers,
            summary.subjects,
            summary.rooms,
            summary.batches,
        )
        return summary

    def summary(self) -> RosterSummary:
        with self._lock:
            return RosterSummary(
                teachers=len(self.roster.teachers),
                subjects=len(self.roster.subjects),
                rooms=len(self.roster.rooms),
                divisions=len(self.roster.divisions),
                batches=len(self.roster.batches),
            )

    # ----------------------------
    # Teacher load
    # ----------------------------

    def teacher_state(self) -> TeacherAllocationState:
        with self._lock:
            return TeacherAllocationState(
                assignments=self.teachers.assignments(),
                workload=self.teachers.workload(),
                unassigned_subjects=self.teachers.unassigned_subjects(),
                active_teachers=self.teachers.active_teacher_count(),
                progress=self.teachers.progress(),
            )

    def assign_teacher(self, subject_code: str, teacher_id: str, hours: int | None = None) -> TeacherAssignment:
        with self._lock:
            entry = self.teachers.assign(subject_code, teacher_id, hours)
            self._sync_teachers()
            return entry

    def unassign_teacher(self, subject_code: str, teacher_id: str) -> TeacherAssignment | None:
        with self._lock:
            entry = self.teachers.unassign(subject_code, teacher_id)
            if entry is not None:
                self._sync_teachers()
            return entry

    def toggle_priority(self, subject_code: str, teacher_id: str) -> TeacherAssignment | None:
        with self._lock:
            return self.teachers.toggle_priority(subject_code, teacher_id)

    def auto_assign_teachers(self) -> AutoAssignSummary:
        with self._lock:
            summary = self.teachers.auto_assign()
            self._sync_teachers()
            return summary

    def reset_teachers(self) -> None:
        with self._lock:
            self.teachers.reset()
            self._sync_teachers()

    def assignable_subjects(self, teacher_id: str) -> list[AssignableSubject]:
        with self._lock:
            return self.teachers.assignable_subjects(teacher_id)

    # ----------------------------
    # Rooms and batching
    # ----------------------------

    def batch_state(self) -> BatchAllocationState:
        with self._lock:
            return BatchAllocationState(
                pairings=self.rooms.pairings(),
                conflicts=self.rooms.conflicts(),
                progress=self.rooms.progress(),
            )

    def set_mode(self, batch_key: str, subject_code: str, mode: BatchMode) -> BatchAssignment:
        with self._lock:
            return self.rooms.set_mode(batch_key, subject_code, mode)

    def assign_room(self, batch_key: str, subject_code: str, room_id: str) -> RoomAssignmentResult:
        with self._lock:
            return self.rooms.assign_room(batch_key, subject_code, room_id)

    def clear_room(self, batch_key: str, subject_code: str) -> BatchAssignment:
        with self._lock:
            return self.rooms.clear_room(batch_key, subject_code)

    def auto_assign_rooms(self) -> AutoRoomSummary:
        with self._lock:
            return self.rooms.auto_assign_rooms()

    def reset_rooms(self) -> None:
        with self._lock:
            self.rooms.reset()

    def validate_rooms(self) -> ValidationReport:
        with self._lock:
            return ValidationReport(
                conflicts=self.rooms.recompute_conflicts(),
                capacity_violations=self.rooms.capacity_violations(),
            )

    def room_usage(self) -> list[RoomUsage]:
        with self._lock:
            return self.rooms.room_usage()

    def export(self) -> AllocationSnapshot:
        with self._lock:
            return AllocationSnapshot(
                subjects=self.teachers.export(),
                batches=[
                    BatchSnapshotEntry(
                        batch_key=item.batch_key,
                        subject_code=item.subject_code,
                        room_id=item.room_id,
                        mode=item.mode,
                        teacher_id=item.teacher_id,
                    )
                    for item in self.rooms.export()
                ],
            )

    def _sync_teachers(self) -> None:
        self.rooms.set_teachers(self.teachers.lead_teachers())
