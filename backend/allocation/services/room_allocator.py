"""Room assignment for (batch, subject) pairings.

Capacity is a hard block: a room that cannot seat the required occupancy is
refused outright. Room type is soft: a lab subject in a classroom (or the
reverse) is recorded but flagged with a ``room_type_mismatch`` conflict.

Changing a pairing's mode does not re-check its current room. Call
``capacity_violations`` (or assign the room again) to find rooms that became
too small after a switch to ``combined``.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from threading import Lock

from allocation.core.exceptions import CapacityExceededError
from allocation.schemas.allocation import (
    AllocationProgress,
    AutoRoomSummary,
    BatchAssignment,
    BatchMode,
    CapacityViolation,
    ConflictDetail,
    RoomAssignmentResult,
    RoomUsage,
)
from allocation.schemas.roster import Batch, Roster, Room, Subject
from allocation.services.capacity import (
    ConflictRegistry,
    progress,
    required_capacity,
    room_type_compatible,
    type_mismatch_message,
    usage_level,
)

logger = logging.getLogger(__name__)


class RoomBatchAllocator:
    def __init__(self, roster: Roster, lead_teachers: Mapping[str, str | None] | None = None) -> None:
        self.roster = roster
        self._pairings: dict[tuple[str, str], BatchAssignment] = {}
        self._conflicts = ConflictRegistry()
        self._lock = Lock()
        for batch in roster.batches:
            for subject in roster.subjects:
                self._pairings[(batch.key, subject.code)] = BatchAssignment(
                    batch_key=batch.key,
                    subject_code=subject.code,
                    teacher_id=(lead_teachers or {}).get(subject.code),
                    mode=subject.default_mode,
                )

    # ----------------------------
    # Mutations
    # ----------------------------

    def set_mode(self, batch_key: str, subject_code: str, mode: BatchMode) -> BatchAssignment:
        with self._lock:
            pairing = self._pairing(batch_key, subject_code)
            pairing.mode = BatchMode(mode)
            return pairing.model_copy()

    def assign_room(self, batch_key: str, subject_code: str, room_id: str) -> RoomAssignmentResult:
        with self._lock:
            batch = self.roster.batch(batch_key)
            subject = self.roster.subject(subject_code)
            room = self.roster.room(room_id)
            pairing = self._pairings[(batch.key, subject.code)]

            required = required_capacity(batch, pairing.mode)
            if room.capacity < required:
                logger.info(
                    "Rejected room %s for %s/%s: capacity %d < %d",
                    room.room_id,
                    batch.key,
                    subject.code,
                    room.capacity,
                    required,
                )
                raise CapacityExceededError(
                    "room",
                    room.room_id,
                    available=room.capacity,
                    requested=required,
                    message=(
                        f"Room {room.room_no} capacity ({room.capacity}) is insufficient "
                        f"for this batch ({required} students)"
                    ),
                )

            conflict = self._check_type(batch, subject, room)
            pairing.room_id = room.room_id
            logger.debug("Assigned room %s to %s/%s", room.room_id, batch.key, subject.code)
            return RoomAssignmentResult(
                assignment=pairing.model_copy(),
                conflict=conflict.model_copy() if conflict else None,
            )

    def clear_room(self, batch_key: str, subject_code: str) -> BatchAssignment:
        with self._lock:
            pairing = self._pairing(batch_key, subject_code)
            pairing.room_id = None
            self._conflicts.purge(pairing.batch_key, pairing.subject_code)
            return pairing.model_copy()

    def set_teachers(self, lead_teachers: Mapping[str, str | None]) -> None:
        with self._lock:
            for (_batch_key, subject_code), pairing in self._pairings.items():
                if subject_code in lead_teachers:
                    pairing.teacher_id = lead_teachers[subject_code]

    def auto_assign_rooms(self) -> AutoRoomSummary:
        with self._lock:
            assigned = 0
            unassigned: list[tuple[str, str]] = []
            for batch in self.roster.batches:
                for subject in self.roster.subjects:
                    pairing = self._pairings[(batch.key, subject.code)]
                    if pairing.room_id is not None:
                        continue

                    required = required_capacity(batch, pairing.mode)
                    candidates = [
                        room
                        for room in self.roster.rooms
                        if room.capacity >= required and room_type_compatible(subject, room)
                    ]
                    if not candidates:
                        unassigned.append((batch.key, subject.code))
                        continue

                    # Tightest fit; min() returns the first room on ties.
                    best = min(candidates, key=lambda room: room.capacity)
                    pairing.room_id = best.room_id
                    assigned += 1

            logger.info("Auto-assigned rooms to %d pairings", assigned)
            if unassigned:
                logger.warning(
                    "No suitable room for %d pairings: %s",
                    len(unassigned),
                    ", ".join(f"{batch_key}/{code}" for batch_key, code in unassigned),
                )
            return AutoRoomSummary(assigned_pairings=assigned, unassigned_pairings=unassigned)

    def reset(self) -> None:
        with self._lock:
            for (_batch_key, subject_code), pairing in self._pairings.items():
                pairing.room_id = None
                pairing.mode = self.roster.subject(subject_code).default_mode
            self._conflicts.clear()
            logger.info("Room assignments reset")

    def recompute_conflicts(self) -> list[ConflictDetail]:
        with self._lock:
            self._conflicts.clear()
            for (batch_key, subject_code), pairing in self._pairings.items():
                if pairing.room_id is None:
                    continue
                self._check_type(
                    self.roster.batch(batch_key),
                    self.roster.subject(subject_code),
                    self.roster.room(pairing.room_id),
                )
            return self._conflicts.entries()

    # ----------------------------
    # Queries
    # ----------------------------

    def pairings(self) -> list[BatchAssignment]:
        with self._lock:
            return [item.model_copy() for item in self._pairings.values()]

    def pairing(self, batch_key: str, subject_code: str) -> BatchAssignment:
        with self._lock:
            return self._pairing(batch_key, subject_code).model_copy()

    def conflicts(self) -> list[ConflictDetail]:
        with self._lock:
            return self._conflicts.entries()

    def capacity_violations(self) -> list[CapacityViolation]:
        with self._lock:
            violations: list[CapacityViolation] = []
            for (batch_key, subject_code), pairing in self._pairings.items():
                if pairing.room_id is None:
                    continue
                room = self.roster.room(pairing.room_id)
                required = required_capacity(self.roster.batch(batch_key), pairing.mode)
                if room.capacity < required:
                    violations.append(
                        CapacityViolation(
                            batch_key=batch_key,
                            subject_code=subject_code,
                            room_id=room.room_id,
                            capacity=room.capacity,
                            required=required,
                        )
                    )
            return violations

    def progress(self) -> AllocationProgress:
        with self._lock:
            completed = sum(
                1 for pairing in self._pairings.values() if pairing.teacher_id and pairing.room_id
            )
            return progress(completed, len(self._pairings))

    def room_usage(self) -> list[RoomUsage]:
        with self._lock:
            counts = Counter(pairing.room_id for pairing in self._pairings.values() if pairing.room_id)
            return [
                RoomUsage(
                    room_id=room.room_id,
                    room_type=room.room_type.value,
                    capacity=room.capacity,
                    assignment_count=counts[room.room_id],
                    level=usage_level(counts[room.room_id]),
                )
                for room in self.roster.rooms
            ]

    def export(self) -> list[BatchAssignment]:
        return self.pairings()

    # ----------------------------
    # Internal helpers (caller holds the lock)
    # ----------------------------

    def _pairing(self, batch_key: str, subject_code: str) -> BatchAssignment:
        batch = self.roster.batch(batch_key)
        subject = self.roster.subject(subject_code)
        return self._pairings[(batch.key, subject.code)]

    def _check_type(self, batch: Batch, subject: Subject, room: Room) -> ConflictDetail | None:
        if room_type_compatible(subject, room):
            self._conflicts.purge(batch.key, subject.code)
            return None
        conflict = ConflictDetail(
            batch_key=batch.key,
            subject_code=subject.code,
            room_id=room.room_id,
            message=type_mismatch_message(subject, room),
        )
        self._conflicts.record(conflict)
        logger.warning("Room type mismatch: %s", conflict.message)
        return conflict
