import datetime as dt

import pytest

from release_scheduler.schedule_models import (
    Document,
    Duration,
    Milestone,
    MilestoneGenerator,
    MilestoneRelation,
    Phase,
    Schedule,
    example_document,
)
from release_scheduler.scheduling import (
    MilestoneNotFoundError,
    ScheduleConsistencyError,
    SchedulingError,
    find_milestone,
    generate_schedule,
    plan_backwards,
    replan,
)


def _schedule_with(milestones, relations):
    return Schedule(phases=[Phase(name="Phase", milestones=milestones)], milestone_deltas=relations)


def _due(schedule, alias):
    return find_milestone(schedule, alias).due_date


def test_behind_relation_subtracts_duration_from_target():
    schedule = _schedule_with(
        [Milestone("A", "A"), Milestone("B", "B", due_date=dt.date(2025, 6, 1))],
        [MilestoneRelation("A", "Behind", "B", Duration.weeks(2))],
    )

    status = plan_backwards(schedule)

    assert _due(status, "A") == dt.date(2025, 5, 18)


def test_ahead_of_relation_adds_duration_to_target():
    schedule = _schedule_with(
        [Milestone("A", "A"), Milestone("B", "B", due_date=dt.date(2025, 6, 1))],
        [MilestoneRelation("A", "AheadOf", "B", Duration.sprints(1))],
    )

    status = plan_backwards(schedule)

    assert _due(status, "A") == dt.date(2025, 6, 22)


def test_plan_backwards_does_not_modify_its_input():
    schedule = _schedule_with(
        [Milestone("A", "A"), Milestone("B", "B")],
        [MilestoneRelation("A", "Behind", "B", Duration.weeks(1))],
    )

    plan_backwards(schedule, ("B", dt.date(2025, 6, 1)))

    assert _due(schedule, "A") is None
    assert _due(schedule, "B") is None


def test_existing_due_date_is_never_overwritten_by_propagation():
    schedule = _schedule_with(
        [
            Milestone("A", "A", due_date=dt.date(2025, 1, 1)),
            Milestone("B", "B", due_date=dt.date(2025, 6, 1)),
        ],
        [MilestoneRelation("A", "Behind", "B", Duration.weeks(1))],
    )

    first = plan_backwards(schedule)
    second = plan_backwards(first)

    assert _due(first, "A") == dt.date(2025, 1, 1)
    assert _due(second, "A") == dt.date(2025, 1, 1)


def test_pin_overwrites_existing_due_date():
    schedule = _schedule_with([Milestone("Alpha", "X", due_date=dt.date(2025, 1, 1))], [])

    status = plan_backwards(schedule, ("X", dt.date(2025, 3, 3)))

    assert _due(status, "X") == dt.date(2025, 3, 3)


def test_pin_accepts_milestone_name():
    schedule = _schedule_with([Milestone("General Availability", "GA")], [])

    status = plan_backwards(schedule, ("General Availability", dt.date(2025, 6, 1)))

    assert _due(status, "GA") == dt.date(2025, 6, 1)


def test_unknown_pin_raises_lookup_error():
    schedule = _schedule_with([Milestone("A", "A")], [])

    with pytest.raises(MilestoneNotFoundError) as excinfo:
        plan_backwards(schedule, ("missing", dt.date(2025, 6, 1)))

    assert excinfo.value.alias_or_name == "missing"
    assert "missing" in str(excinfo.value)


def test_unknown_relation_target_raises_lookup_error():
    schedule = _schedule_with(
        [Milestone("A", "A")],
        [MilestoneRelation("A", "Behind", "nowhere", Duration.weeks(1))],
    )

    with pytest.raises(SchedulingError):
        plan_backwards(schedule)


def test_unknown_relation_milestone_raises_once_target_is_dated():
    schedule = _schedule_with(
        [Milestone("B", "B", due_date=dt.date(2025, 6, 1))],
        [MilestoneRelation("ghost", "Behind", "B", Duration.weeks(1))],
    )

    with pytest.raises(MilestoneNotFoundError):
        plan_backwards(schedule)


def test_duplicate_relations_abort_before_any_date_is_set():
    schedule = _schedule_with(
        [Milestone("A", "A"), Milestone("B", "B")],
        [
            MilestoneRelation("A", "Behind", "B", Duration.weeks(1)),
            MilestoneRelation("A", "AheadOf", "B", Duration.weeks(2)),
        ],
    )

    with pytest.raises(ScheduleConsistencyError):
        plan_backwards(schedule, ("B", dt.date(2025, 6, 1)))

    assert _due(schedule, "A") is None
    assert _due(schedule, "B") is None


def test_duplicate_relation_error_is_not_recoverable_scheduling_error():
    assert not issubclass(ScheduleConsistencyError, SchedulingError)


def test_relation_to_target_resolved_later_in_pass_stays_unresolved():
    schedule = _schedule_with(
        [Milestone("A", "A"), Milestone("B", "B"), Milestone("C", "C")],
        [
            MilestoneRelation("A", "Behind", "B", Duration.weeks(1)),
            MilestoneRelation("B", "Behind", "C", Duration.weeks(1)),
        ],
    )

    status = plan_backwards(schedule, ("C", dt.date(2025, 6, 1)))

    assert _due(status, "B") == dt.date(2025, 5, 25)
    assert _due(status, "A") is None


def test_lookup_prefers_first_match_in_scan_order():
    first = Milestone("X", "first")
    second = Milestone("second", "X")
    schedule = Schedule(phases=[Phase("P1", [first]), Phase("P2", [second])])

    assert find_milestone(schedule, "X") is first


def test_generator_expansion_appends_numbered_milestones_and_scaled_relations():
    generator = MilestoneGenerator(
        name="Sprints",
        count=3,
        delta_template=MilestoneRelation("", "AheadOf", "K", Duration.sprints(1)),
        milestone_template=Milestone("Sprint ", "S"),
    )
    declared = MilestoneRelation("K", "Behind", "Z", Duration.weeks(1))
    schedule = Schedule(
        phases=[Phase("Dev", [Milestone("Kickoff", "K")], milestone_generators=[generator])],
        milestone_deltas=[declared],
    )

    generate_schedule(schedule)

    assert [m.alias for m in schedule.phases[0].milestones] == ["K", "S1", "S2", "S3"]
    assert [m.name for m in schedule.phases[0].milestones][1:] == ["Sprint 1", "Sprint 2", "Sprint 3"]
    assert schedule.milestone_deltas[0] == declared
    generated = schedule.milestone_deltas[1:]
    assert [r.milestone for r in generated] == ["S1", "S2", "S3"]
    assert [r.by for r in generated] == [Duration.sprints(1), Duration.sprints(2), Duration.sprints(3)]
    assert all(r.direction == "AheadOf" and r.target == "K" for r in generated)


def test_generator_resets_due_date_from_template():
    generator = MilestoneGenerator(
        name="Checks",
        count=1,
        delta_template=MilestoneRelation("", "Behind", "K", Duration.weeks(1)),
        milestone_template=Milestone("Check", "C", due_date=dt.date(2020, 1, 1)),
    )
    schedule = Schedule(phases=[Phase("Dev", [Milestone("Kickoff", "K")], milestone_generators=[generator])])

    generate_schedule(schedule)

    assert schedule.phases[0].milestones[1].due_date is None


def test_generating_twice_duplicates_entries():
    generator = MilestoneGenerator(
        name="Checks",
        count=2,
        delta_template=MilestoneRelation("", "Behind", "K", Duration.weeks(1)),
        milestone_template=Milestone("Check", "C"),
    )
    schedule = Schedule(phases=[Phase("Dev", [Milestone("Kickoff", "K")], milestone_generators=[generator])])

    generate_schedule(schedule)
    generate_schedule(schedule)

    assert len(schedule.phases[0].milestones) == 5
    assert len(schedule.milestone_deltas) == 4
    with pytest.raises(ScheduleConsistencyError):
        plan_backwards(schedule)


def test_release_example_end_to_end():
    document = example_document()

    replan(document, ("GA", dt.date(2025, 6, 1)))
    status = document.status

    assert _due(status, "GA") == dt.date(2025, 6, 1)
    assert _due(status, "CF") == dt.date(2025, 5, 4)
    assert _due(status, "BO") == dt.date(2025, 4, 13)
    assert _due(status, "FF") == dt.date(2025, 3, 23)
    # FF minus 6 sprints of 21 days each (126 days).
    assert _due(status, "RF") == dt.date(2024, 11, 17)
    assert _due(status, "RG") is None
    assert _due(status, "PS") is None
    assert _due(status, "S1") == dt.date(2024, 12, 8)
    assert _due(status, "S6") == dt.date(2025, 3, 23)


def test_replan_keeps_spec_untouched_and_replaces_status():
    document = example_document()

    replan(document, ("GA", dt.date(2025, 6, 1)))
    first_status = document.status
    replan(document, ("GA", dt.date(2025, 7, 6)))

    assert document.status is not first_status
    assert _due(document.status, "CF") == dt.date(2025, 6, 8)
    assert len(document.spec.phases[1].milestones) == 2
    assert len(document.spec.milestone_deltas) == 4
    assert all(m.due_date is None for m in document.spec.iter_milestones())


def test_replan_without_pin_uses_dates_already_in_spec():
    document = Document(
        kind="Schedule",
        spec=_schedule_with(
            [Milestone("A", "A"), Milestone("B", "B", due_date=dt.date(2025, 6, 1))],
            [MilestoneRelation("A", "Behind", "B", Duration.weeks(1))],
        ),
    )

    replan(document)

    assert _due(document.status, "A") == dt.date(2025, 5, 25)
    assert _due(document.spec, "A") is None
