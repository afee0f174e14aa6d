"""Teacher-load allocation.

Assigns one or more teachers to each subject while keeping every teacher
inside their weekly hour limit. A single teacher never takes more than
``MAX_HOURS_PER_TEACHER_PER_SUBJECT`` hours of one subject, so subjects with
large weekly loads are shared between several teachers.

``auto_assign`` is a deterministic greedy pass, not an optimizer:

1. subjects are visited in roster order;
2. every teacher who prefers the subject and still has room for
   ``min(total_hours, cap)`` hours receives it, most-available first;
3. a subject nobody preferred (or nobody preferred with room left) goes to
   the single most-available teacher overall;
4. anything still uncovered is left empty for the operator to handle.
"""

from __future__ import annotations

import logging
from threading import Lock

from allocation.core.exceptions import DuplicateAssignmentError, CapacityExceededError, InvalidAllocationError
from allocation.schemas.allocation import (
    AllocationProgress,
    AssignableSubject,
    AutoAssignSummary,
    TeacherAssignment,
    TeacherWorkload,
)
from allocation.schemas.roster import Roster, Subject, normalize_code, normalize_id
from allocation.services.capacity import WorkloadLedger, most_available_first, progress

MAX_HOURS_PER_TEACHER_PER_SUBJECT = 4

logger = logging.getLogger(__name__)


class TeacherLoadAllocator:
    def __init__(self, roster: Roster, *, per_subject_cap: int = MAX_HOURS_PER_TEACHER_PER_SUBJECT) -> None:
        self.roster = roster
        self.per_subject_cap = per_subject_cap
        self._assignments: dict[str, list[TeacherAssignment]] = {}
        self._ledger = WorkloadLedger({teacher.mis_id: teacher.max_hours for teacher in roster.teachers})
        self._lock = Lock()

    def default_hours(self, subject: Subject) -> int:
        return min(subject.total_hours, self.per_subject_cap)

    # ----------------------------
    # Mutations
    # ----------------------------

    def assign(self, subject_code: str, teacher_id: str, hours: int | None = None) -> TeacherAssignment:
        with self._lock:
            return self._assign(subject_code, teacher_id, hours)

    def unassign(self, subject_code: str, teacher_id: str) -> TeacherAssignment | None:
        with self._lock:
            code = normalize_code(subject_code)
            teacher_id = normalize_id(teacher_id)
            entries = self._assignments.get(code)
            if not entries:
                return None
            entry = next((item for item in entries if item.teacher_id == teacher_id), None)
            if entry is None:
                return None

            entries.remove(entry)
            if not entries:
                del self._assignments[code]
            refunded = self._ledger.refund(teacher_id, code)
            logger.debug("Unassigned %s from %s, %dh returned", teacher_id, code, refunded)
            return entry.model_copy()

    def toggle_priority(self, subject_code: str, teacher_id: str) -> TeacherAssignment | None:
        teacher_id = normalize_id(teacher_id)
        with self._lock:
            entries = self._assignments.get(normalize_code(subject_code), [])
            for entry in entries:
                if entry.teacher_id == teacher_id:
                    entry.is_priority = not entry.is_priority
                    return entry.model_copy()
            return None

    def auto_assign(self) -> AutoAssignSummary:
        with self._lock:
            self._reset()
            unassigned: list[str] = []

            for subject in self.roster.subjects:
                hours = self.default_hours(subject)

                preferred = [teacher.mis_id for teacher in self.roster.teachers if teacher.prefers(subject.code)]
                for teacher_id in most_available_first(preferred, self._ledger):
                    if self._ledger.remaining(teacher_id) >= hours:
                        self._record(subject.code, teacher_id, hours)

                if subject.code not in self._assignments:
                    available = [
                        teacher.mis_id
                        for teacher in self.roster.teachers
                        if self._ledger.remaining(teacher.mis_id) >= hours
                    ]
                    if available:
                        self._record(subject.code, most_available_first(available, self._ledger)[0], hours)

                if subject.code not in self._assignments:
                    unassigned.append(subject.code)

            summary = AutoAssignSummary(
                assigned_subjects=len(self._assignments),
                unassigned_subjects=unassigned,
            )
            logger.info(
                "Auto-assigned teachers to %d/%d subjects",
                summary.assigned_subjects,
                len(self.roster.subjects),
            )
            if unassigned:
                logger.warning("No teacher capacity left for subjects: %s", ", ".join(unassigned))
            return summary

    def reset(self) -> None:
        with self._lock:
            self._reset()
            logger.info("Teacher assignments reset")

    # ----------------------------
    # Queries
    # ----------------------------

    def assignments(self) -> dict[str, list[TeacherAssignment]]:
        with self._lock:
            return {code: [item.model_copy() for item in entries] for code, entries in self._assignments.items()}

    def assignments_for(self, subject_code: str) -> list[TeacherAssignment]:
        with self._lock:
            entries = self._assignments.get(normalize_code(subject_code), [])
            return [item.model_copy() for item in entries]

    def workload(self) -> list[TeacherWorkload]:
        with self._lock:
            return [self._ledger.snapshot(teacher.mis_id) for teacher in self.roster.teachers]

    def workload_for(self, teacher_id: str) -> TeacherWorkload:
        teacher = self.roster.teacher(teacher_id)
        with self._lock:
            return self._ledger.snapshot(teacher.mis_id)

    def progress(self) -> AllocationProgress:
        with self._lock:
            return progress(len(self._assignments), len(self.roster.subjects))

    def unassigned_subjects(self) -> list[str]:
        with self._lock:
            return [subject.code for subject in self.roster.subjects if subject.code not in self._assignments]

    def active_teacher_count(self) -> int:
        with self._lock:
            return sum(1 for teacher in self.roster.teachers if self._ledger.assigned(teacher.mis_id) > 0)

    def lead_teachers(self) -> dict[str, str | None]:
        """First assigned teacher per subject, for consumers that expect one."""
        with self._lock:
            return {
                subject.code: (self._assignments[subject.code][0].teacher_id if subject.code in self._assignments else None)
                for subject in self.roster.subjects
            }

    def assignable_subjects(self, teacher_id: str) -> list[AssignableSubject]:
        teacher = self.roster.teacher(teacher_id)
        with self._lock:
            remaining = self._ledger.remaining(teacher.mis_id)
            options: list[AssignableSubject] = []
            for subject in self.roster.subjects:
                if self._ledger.holds(teacher.mis_id, subject.code):
                    continue
                hours = self.default_hours(subject)
                options.append(
                    AssignableSubject(
                        code=subject.code,
                        name=subject.name,
                        hours=hours,
                        can_assign=remaining >= hours,
                        is_preferred=teacher.prefers(subject.code),
                    )
                )
            return options

    def export(self) -> dict[str, list[TeacherAssignment]]:
        with self._lock:
            return {
                subject.code: [item.model_copy() for item in self._assignments.get(subject.code, [])]
                for subject in self.roster.subjects
            }

    # ----------------------------
    # Internal helpers (caller holds the lock)
    # ----------------------------

    def _assign(self, subject_code: str, teacher_id: str, hours: int | None) -> TeacherAssignment:
        subject = self.roster.subject(subject_code)
        teacher = self.roster.teacher(teacher_id)
        if hours is None:
            hours = self.default_hours(subject)
        if hours < 1:
            raise InvalidAllocationError(
                f"Hours must be positive, got {hours}",
                details={"subject_code": subject.code, "teacher_id": teacher.mis_id, "hours": hours},
            )
        if hours > self.per_subject_cap:
            raise CapacityExceededError(
                "subject_cap",
                subject.code,
                available=self.per_subject_cap,
                requested=hours,
                message=(
                    f"A teacher can take at most {self.per_subject_cap}h of {subject.code}, "
                    f"{hours}h were requested"
                ),
            )

        entries = self._assignments.get(subject.code, [])
        if any(item.teacher_id == teacher.mis_id for item in entries):
            logger.info("Rejected duplicate assignment of %s to %s", teacher.mis_id, subject.code)
            raise DuplicateAssignmentError(subject.code, teacher.mis_id)

        try:
            entry = self._record(subject.code, teacher.mis_id, hours)
        except CapacityExceededError as exc:
            logger.info("Rejected %s for %s: %s", teacher.mis_id, subject.code, exc.message)
            raise
        return entry.model_copy()

    def _record(self, subject_code: str, teacher_id: str, hours: int) -> TeacherAssignment:
        # The ledger raises before anything is written, so a refusal leaves both tables untouched.
        self._ledger.charge(teacher_id, subject_code, hours)
        entry = TeacherAssignment(teacher_id=teacher_id, hours=hours)
        self._assignments.setdefault(subject_code, []).append(entry)
        logger.debug("Assigned %s to %s for %dh", teacher_id, subject_code, hours)
        return entry

    def _reset(self) -> None:
        self._assignments.clear()
        self._ledger.reset()
