from __future__ import annotations

import copy
import logging
from datetime import date

from .schedule_models import Document, Milestone, Schedule

logger = logging.getLogger(__name__)

Pin = tuple[str, date]
"""An externally fixed `(alias, date)` applied before propagation."""


class ScheduleValidationError(Exception):
    """Raised when a persisted document is malformed (bad shape, dates, durations)."""


class SchedulingError(Exception):
    """Raised when a schedule cannot be planned (unknown milestones)."""


class MilestoneNotFoundError(SchedulingError):
    """Raised when no milestone matches an alias or name."""

    def __init__(self, alias_or_name: str):
        super().__init__(f"Milestone '{alias_or_name}' not found")
        self.alias_or_name = alias_or_name


class ScheduleConsistencyError(Exception):
    """
    Raised when two relations share the same (milestone, target) pair.

    Not a SchedulingError: callers abort instead of recovering.
    """


def find_milestone(schedule: Schedule, alias_or_name: str) -> Milestone:
    """
    Return the first milestone whose alias or name equals `alias_or_name`.

    Phases are scanned in order, then milestones within each phase; an alias
    match on a later milestone does not beat a name match on an earlier one.
    """

    for milestone in schedule.iter_milestones():
        if milestone.alias == alias_or_name or milestone.name == alias_or_name:
            return milestone
    raise MilestoneNotFoundError(alias_or_name)


def generate_schedule(schedule: Schedule) -> Schedule:
    """
    Expand every phase's milestone generators in-place and return the schedule.

    Generated milestones are appended to their phase, generated relations to
    `milestone_deltas`. Not re-entrant: calling twice duplicates both.
    """

    for phase in schedule.phases:
        for generator in phase.milestone_generators or []:
            milestones, relations = generator.expand()
            logger.debug(
                "Generator '%s' in phase '%s' produced %s milestones",
                generator.name,
                phase.name,
                len(milestones),
            )
            phase.milestones.extend(milestones)
            schedule.milestone_deltas.extend(relations)
    return schedule


def apply_pin(schedule: Schedule, pin: Pin) -> Milestone:
    """Set the pinned milestone's due date, overwriting any existing value."""

    alias_or_name, due_date = pin
    milestone = find_milestone(schedule, alias_or_name)
    logger.info("Pinning '%s' to %s", milestone.alias, due_date.isoformat())
    milestone.due_date = due_date
    return milestone


def check_unique_relations(schedule: Schedule) -> None:
    seen: set[tuple[str, str]] = set()
    duplicates: list[tuple[str, str]] = []
    for relation in schedule.milestone_deltas:
        pair = (relation.milestone, relation.target)
        if pair in seen:
            duplicates.append(pair)
        seen.add(pair)
    if duplicates:
        listing = ", ".join(f"{m} -> {t}" for m, t in duplicates)
        raise ScheduleConsistencyError(f"Duplicate milestone relations: {listing}")


def plan_backwards(schedule: Schedule, pin: Pin | None = None) -> Schedule:
    """
    Propagate due dates through a generated schedule and return a dated copy.

    - The input schedule is not modified.
    - A pin always overwrites the pinned milestone's date.
    - Relations are visited once, in list order. A relation whose target has no
      date yet is skipped and not retried later in the pass.
    - A milestone that already has a date keeps it (first write wins).
    """

    status = copy.deepcopy(schedule)

    if pin is not None:
        apply_pin(status, pin)

    check_unique_relations(status)

    for relation in status.milestone_deltas:
        target = find_milestone(status, relation.target)
        if target.due_date is None:
            logger.debug("Skipping '%s': target '%s' has no due date", relation, relation.target)
            continue

        candidate = relation.apply(target.due_date)
        milestone = find_milestone(status, relation.milestone)
        if milestone.due_date is not None:
            logger.debug(
                "Keeping '%s' at %s (relation '%s' suggests %s)",
                relation.milestone,
                milestone.due_date.isoformat(),
                relation,
                candidate.isoformat(),
            )
            continue

        milestone.due_date = candidate
        logger.debug("Applied '%s': %s -> %s", relation, relation.milestone, candidate.isoformat())

    return status


def replan(document: Document, pin: Pin | None = None) -> Document:
    """
    Recompute `document.status` from a fresh copy of `document.spec`.

    The spec is never touched; any previous status is replaced wholesale.
    """

    working = generate_schedule(copy.deepcopy(document.spec))
    document.status = plan_backwards(working, pin)
    total = sum(1 for _ in document.status.iter_milestones())
    logger.info("Replanned schedule: %s of %s milestones dated", document.status.dated_count, total)
    return document
