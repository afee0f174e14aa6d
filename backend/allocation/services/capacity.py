from __future__ import annotations

from collections.abc import Iterable, Mapping

from allocation.core.exceptions import CapacityExceededError
from allocation.schemas.allocation import AllocationProgress, BatchMode, ConflictDetail, TeacherWorkload
from allocation.schemas.roster import Batch, Room, Subject


class WorkloadLedger:
    """Per-teacher hour bookkeeping.

    ``assigned`` is derived from the held-subject map, so ``assigned +
    remaining == max_hours`` cannot drift. Every charge and refund goes through
    this class.
    """

    def __init__(self, max_hours: Mapping[str, int]) -> None:
        self._max_hours: dict[str, int] = dict(max_hours)
        self._held: dict[str, dict[str, int]] = {teacher_id: {} for teacher_id in self._max_hours}

    def assigned(self, teacher_id: str) -> int:
        return sum(self._held[teacher_id].values())

    def remaining(self, teacher_id: str) -> int:
        return self._max_hours[teacher_id] - self.assigned(teacher_id)

    def holds(self, teacher_id: str, subject_code: str) -> bool:
        return subject_code in self._held[teacher_id]

    def charge(self, teacher_id: str, subject_code: str, hours: int) -> None:
        held = self._held[teacher_id]
        # A stale entry for the same subject is replaced, never doubled.
        stale = held.get(subject_code, 0)
        remaining = self.remaining(teacher_id) + stale
        if hours > remaining:
            raise CapacityExceededError(
                "teacher",
                teacher_id,
                available=remaining,
                requested=hours,
                message=f"Teacher {teacher_id} has {remaining}h remaining but {hours}h were requested",
            )
        held[subject_code] = hours

    def refund(self, teacher_id: str, subject_code: str) -> int:
        return self._held[teacher_id].pop(subject_code, 0)

    def reset(self) -> None:
        for held in self._held.values():
            held.clear()

    def snapshot(self, teacher_id: str) -> TeacherWorkload:
        assigned = self.assigned(teacher_id)
        return TeacherWorkload(
            teacher_id=teacher_id,
            max_hours=self._max_hours[teacher_id],
            assigned=assigned,
            remaining=self._max_hours[teacher_id] - assigned,
            subjects=dict(self._held[teacher_id]),
        )


def most_available_first(teacher_ids: Iterable[str], ledger: WorkloadLedger) -> list[str]:
    # sorted() is stable, so equal remaining hours keep roster order.
    return sorted(teacher_ids, key=lambda teacher_id: -ledger.remaining(teacher_id))


def required_capacity(batch: Batch, mode: BatchMode) -> int:
    if mode == BatchMode.combined:
        return batch.strength
    return batch.largest_sub_batch


def room_type_compatible(subject: Subject, room: Room) -> bool:
    return subject.requires_lab == room.is_lab


def type_mismatch_message(subject: Subject, room: Room) -> str:
    if subject.requires_lab:
        return f"{subject.name} requires a lab room but {room.room_no} is a {room.room_type.value}"
    return f"{subject.name} is a theory subject but {room.room_no} is a {room.room_type.value} room"


class ConflictRegistry:
    """Active soft conflicts, at most one per (batch, subject) pairing."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], ConflictDetail] = {}

    def record(self, conflict: ConflictDetail) -> None:
        key = (conflict.batch_key, conflict.subject_code)
        # Purge first so a re-recorded pairing moves to the end of the list.
        self._entries.pop(key, None)
        self._entries[key] = conflict

    def purge(self, batch_key: str, subject_code: str) -> None:
        self._entries.pop((batch_key, subject_code), None)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[ConflictDetail]:
        return [item.model_copy() for item in self._entries.values()]


def progress(completed: int, total: int) -> AllocationProgress:
    percent = round(completed / total * 100) if total > 0 else 0
    return AllocationProgress(completed=completed, total=total, percent=percent)


def usage_level(assignment_count: int) -> str:
    if assignment_count == 0:
        return "available"
    if assignment_count <= 2:
        return "low"
    if assignment_count <= 4:
        return "moderate"
    return "high"
