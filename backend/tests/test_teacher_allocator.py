import pytest

from allocation.core.exceptions import (
    CapacityExceededError,
    DuplicateAssignmentError,
    InvalidAllocationError,
    ResourceNotFoundError,
)
from allocation.schemas.roster import Roster
from allocation.services.teacher_allocator import MAX_HOURS_PER_TEACHER_PER_SUBJECT, TeacherLoadAllocator


def _assert_hours_conserved(allocator):
    for item in allocator.workload():
        assert item.assigned + item.remaining == item.max_hours
        assert item.remaining >= 0
        assert item.assigned == sum(item.subjects.values())


def _assert_no_duplicate_teachers(allocator):
    for entries in allocator.assignments().values():
        teacher_ids = [item.teacher_id for item in entries]
        assert len(teacher_ids) == len(set(teacher_ids))


def test_assign_defaults_hours_to_subject_load_under_cap(roster):
    allocator = TeacherLoadAllocator(roster)

    entry = allocator.assign("CS301", "T1")

    assert entry.teacher_id == "T1"
    assert entry.hours == 3
    assert entry.is_priority is False
    workload = allocator.workload_for("T1")
    assert workload.assigned == 3
    assert workload.remaining == 13
    assert workload.subjects == {"CS301": 3}
    assert [item.model_dump() for item in allocator.assignments_for("CS301")] == [
        {"teacher_id": "T1", "hours": 3, "is_priority": False}
    ]


def test_assign_caps_default_hours_per_teacher(roster):
    allocator = TeacherLoadAllocator(roster)

    entry = allocator.assign("CS302", "T1")

    assert MAX_HOURS_PER_TEACHER_PER_SUBJECT == 4
    assert entry.hours == 4


def test_assign_rejects_when_remaining_hours_are_insufficient():
    roster = Roster.model_validate(
        {
            "teachers": [{"mis_id": "T1", "name": "Dr. Asha Rao", "max_hours": 4}],
            "subjects": [
                {"code": "CS301", "name": "Data Structures", "total_hours": 3},
                {"code": "CS302", "name": "Operating Systems", "total_hours": 3},
            ],
        }
    )
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")
    assert allocator.workload_for("T1").remaining == 1

    with pytest.raises(CapacityExceededError) as exc_info:
        allocator.assign("CS302", "T1", hours=3)

    assert exc_info.value.resource == "teacher"
    assert exc_info.value.available == 1
    assert exc_info.value.requested == 3
    assert exc_info.value.details == {"resource": "teacher", "resource_id": "T1", "available": 1, "requested": 3}
    assert allocator.assignments_for("CS302") == []
    assert allocator.workload_for("T1").assigned == 3
    assert allocator.workload_for("T1").subjects == {"CS301": 3}


def test_assign_rejects_duplicate_teacher_without_mutation(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")

    with pytest.raises(DuplicateAssignmentError) as exc_info:
        allocator.assign("CS301", "T1", hours=1)

    assert exc_info.value.details == {"subject_code": "CS301", "teacher_id": "T1"}
    assert len(allocator.assignments_for("CS301")) == 1
    assert allocator.workload_for("T1").assigned == 3


def test_assign_rejects_hours_above_per_subject_cap(roster):
    allocator = TeacherLoadAllocator(roster)

    with pytest.raises(CapacityExceededError) as exc_info:
        allocator.assign("CS302", "T1", hours=6)

    assert exc_info.value.resource == "subject_cap"
    assert exc_info.value.available == 4
    assert allocator.workload_for("T1").assigned == 0


def test_assign_rejects_non_positive_hours(roster):
    allocator = TeacherLoadAllocator(roster)

    with pytest.raises(InvalidAllocationError):
        allocator.assign("CS301", "T1", hours=0)


def test_assign_unknown_subject_or_teacher_is_not_found(roster):
    allocator = TeacherLoadAllocator(roster)

    with pytest.raises(ResourceNotFoundError) as missing_subject:
        allocator.assign("CS999", "T1")
    with pytest.raises(ResourceNotFoundError) as missing_teacher:
        allocator.assign("CS301", "T9")

    assert missing_subject.value.details["resource_type"] == "Subject"
    assert missing_teacher.value.details["resource_type"] == "Teacher"
    assert allocator.assignments() == {}


def test_assign_accepts_lowercase_subject_code(roster):
    allocator = TeacherLoadAllocator(roster)

    allocator.assign("cs301", "T1")

    assert "CS301" in allocator.assignments()


def test_multiple_teachers_share_one_subject(roster):
    allocator = TeacherLoadAllocator(roster)

    allocator.assign("CS302", "T1")
    allocator.assign("CS302", "T3", hours=2)

    assert [(item.teacher_id, item.hours) for item in allocator.assignments_for("CS302")] == [("T1", 4), ("T3", 2)]
    _assert_hours_conserved(allocator)


def test_unassign_restores_recorded_hours_and_drops_empty_subject(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1", hours=2)

    removed = allocator.unassign("CS301", "T1")

    assert removed is not None
    assert removed.hours == 2
    assert "CS301" not in allocator.assignments()
    workload = allocator.workload_for("T1")
    assert workload.assigned == 0
    assert workload.remaining == 16
    assert workload.subjects == {}


def test_unassign_keeps_other_teachers_on_the_subject(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")
    allocator.assign("CS301", "T2")

    allocator.unassign("CS301", "T1")

    assert [item.teacher_id for item in allocator.assignments_for("CS301")] == ["T2"]


def test_unassign_missing_pair_is_noop(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")

    assert allocator.unassign("CS301", "T2") is None
    assert allocator.unassign("CS501", "T1") is None
    assert allocator.workload_for("T1").assigned == 3


def test_toggle_priority_flips_flag_without_touching_hours(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")
    before = allocator.workload()

    first = allocator.toggle_priority("CS301", "T1")
    second = allocator.toggle_priority("CS301", "T1")

    assert first.is_priority is True
    assert second.is_priority is False
    assert allocator.workload() == before


def test_toggle_priority_missing_entry_is_noop(roster):
    allocator = TeacherLoadAllocator(roster)

    assert allocator.toggle_priority("CS301", "T1") is None
    assert allocator.assignments() == {}


def test_auto_assign_gives_subject_to_every_qualifying_preferred_teacher(roster):
    allocator = TeacherLoadAllocator(roster)

    summary = allocator.auto_assign()

    assignments = allocator.assignments()
    assert [(item.teacher_id, item.hours) for item in assignments["CS301"]] == [("T1", 3), ("T2", 3)]
    assert [(item.teacher_id, item.hours) for item in assignments["CS302"]] == [("T1", 4)]
    assert [(item.teacher_id, item.hours) for item in assignments["CS401"]] == [("T2", 2)]
    # Nobody prefers CS501, so the most available teacher overall takes it.
    assert [(item.teacher_id, item.hours) for item in assignments["CS501"]] == [("T1", 4)]
    assert summary.assigned_subjects == 4
    assert summary.unassigned_subjects == []

    workload = {item.teacher_id: item for item in allocator.workload()}
    assert (workload["T1"].assigned, workload["T1"].remaining) == (11, 5)
    assert (workload["T2"].assigned, workload["T2"].remaining) == (5, 5)
    assert (workload["T3"].assigned, workload["T3"].remaining) == (0, 8)
    _assert_hours_conserved(allocator)
    _assert_no_duplicate_teachers(allocator)


def test_auto_assign_skips_preferred_teacher_without_enough_hours():
    roster = Roster.model_validate(
        {
            "teachers": [
                {"mis_id": "TA", "name": "Dr. Low Capacity", "subject_preferences": ["CS501"], "max_hours": 2},
                {"mis_id": "TB", "name": "Dr. High Capacity", "subject_preferences": ["CS501"], "max_hours": 10},
            ],
            "subjects": [{"code": "CS501", "name": "Compiler Design", "total_hours": 4}],
        }
    )
    allocator = TeacherLoadAllocator(roster)

    allocator.auto_assign()

    assert [(item.teacher_id, item.hours) for item in allocator.assignments_for("CS501")] == [("TB", 4)]
    assert allocator.workload_for("TA").assigned == 0
    assert allocator.workload_for("TB").remaining == 6


def test_auto_assign_keeps_roster_subject_order():
    roster = Roster.model_validate(
        {
            "teachers": [{"mis_id": "T1", "name": "Dr. Only Teacher", "max_hours": 4}],
            "subjects": [
                {"code": "CS101", "name": "Light Subject", "total_hours": 2},
                {"code": "CS102", "name": "Heavy Subject", "total_hours": 4},
            ],
        }
    )
    allocator = TeacherLoadAllocator(roster)

    summary = allocator.auto_assign()

    assert [item.teacher_id for item in allocator.assignments_for("CS101")] == ["T1"]
    assert allocator.assignments_for("CS102") == []
    assert summary.unassigned_subjects == ["CS102"]
    assert allocator.unassigned_subjects() == ["CS102"]


def test_auto_assign_breaks_ties_by_roster_order():
    roster = Roster.model_validate(
        {
            "teachers": [
                {"mis_id": "T2", "name": "Second Listed First", "max_hours": 8},
                {"mis_id": "T1", "name": "First Listed Second", "max_hours": 8},
            ],
            "subjects": [{"code": "CS301", "name": "Data Structures", "total_hours": 3}],
        }
    )
    allocator = TeacherLoadAllocator(roster)

    allocator.auto_assign()

    assert [item.teacher_id for item in allocator.assignments_for("CS301")] == ["T2"]


def test_auto_assign_orders_preferred_teachers_by_remaining_hours():
    roster = Roster.model_validate(
        {
            "teachers": [
                {"mis_id": "T1", "name": "Small Load", "subject_preferences": ["CS301"], "max_hours": 6},
                {"mis_id": "T2", "name": "Large Load", "subject_preferences": ["CS301"], "max_hours": 12},
            ],
            "subjects": [{"code": "CS301", "name": "Data Structures", "total_hours": 3}],
        }
    )
    allocator = TeacherLoadAllocator(roster)

    allocator.auto_assign()

    assert [item.teacher_id for item in allocator.assignments_for("CS301")] == ["T2", "T1"]


def test_auto_assign_discards_manual_edits_and_is_deterministic(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS501", "T3")
    allocator.toggle_priority("CS501", "T3")

    allocator.auto_assign()
    first = (allocator.assignments(), allocator.workload())
    allocator.reset()
    allocator.auto_assign()
    second = (allocator.assignments(), allocator.workload())

    assert first == second
    assert all(not item.is_priority for entries in first[0].values() for item in entries)


def test_reset_restores_full_capacity_and_is_idempotent(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.auto_assign()

    allocator.reset()
    once = (allocator.assignments(), allocator.workload())
    allocator.reset()
    twice = (allocator.assignments(), allocator.workload())

    assert once == twice
    assert once[0] == {}
    assert all(item.assigned == 0 and item.remaining == item.max_hours for item in once[1])


def test_progress_counts_subjects_with_at_least_one_teacher(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T1")
    allocator.assign("CS301", "T2")
    allocator.assign("CS401", "T2")

    progress = allocator.progress()

    assert (progress.completed, progress.total, progress.percent) == (2, 4, 50)
    assert allocator.active_teacher_count() == 2


def test_lead_teachers_reports_first_assigned_teacher(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T2")
    allocator.assign("CS301", "T1")

    leads = allocator.lead_teachers()

    assert leads == {"CS301": "T2", "CS302": None, "CS401": None, "CS501": None}


def test_assignable_subjects_flags_capacity_and_preference(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS302", "T3")
    allocator.assign("CS501", "T3")

    options = {item.code: item for item in allocator.assignable_subjects("T3")}

    assert set(options) == {"CS301", "CS401"}
    assert options["CS301"].can_assign is False
    assert options["CS401"].hours == 2
    assert options["CS401"].can_assign is False

    preferred = {item.code: item.is_preferred for item in allocator.assignable_subjects("T2")}
    assert preferred == {"CS301": True, "CS302": False, "CS401": True, "CS501": False}


def test_export_lists_every_subject_in_roster_order(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS401", "T2")

    exported = allocator.export()

    assert list(exported) == ["CS301", "CS302", "CS401", "CS501"]
    assert exported["CS301"] == []
    assert [item.teacher_id for item in exported["CS401"]] == ["T2"]


def test_hours_conservation_holds_across_mixed_operations(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", "T3")
    allocator.assign("CS302", "T3")
    with pytest.raises(CapacityExceededError):
        allocator.assign("CS501", "T3")
    allocator.unassign("CS301", "T3")
    allocator.assign("CS501", "T3")
    allocator.toggle_priority("CS501", "T3")

    _assert_hours_conserved(allocator)
    _assert_no_duplicate_teachers(allocator)
    assert allocator.workload_for("T3").subjects == {"CS302": 4, "CS501": 4}


def test_padded_teacher_id_is_matched_on_unassign_and_priority(roster):
    allocator = TeacherLoadAllocator(roster)
    allocator.assign("CS301", " T1 ")

    toggled = allocator.toggle_priority("CS301", " T1 ")
    removed = allocator.unassign("CS301", " T1 ")

    assert toggled.is_priority is True
    assert removed is not None
    assert allocator.assignments() == {}
    assert allocator.workload_for("T1").assigned == 0
