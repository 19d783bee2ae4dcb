from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, Literal


DurationUnit = Literal["weeks", "sprints"]
"""Units a relation offset can be expressed in."""

Direction = Literal["Behind", "AheadOf"]
"""Which side of its target a related milestone falls on."""

NodeKind = Literal["phase", "lozenge"]
"""Allowed render node types: phase heading, lozenge (milestone)."""

WEEKS_PER_SPRINT = 3

_DIRECTION_LABELS: dict[str, str] = {"Behind": "behind", "AheadOf": "ahead of"}


@dataclass(frozen=True)
class Duration:
    """Calendar length counted in weeks or sprints."""

    count: int
    unit: DurationUnit = "weeks"

    @classmethod
    def weeks(cls, count: int) -> "Duration":
        return cls(count=count, unit="weeks")

    @classmethod
    def sprints(cls, count: int) -> "Duration":
        return cls(count=count, unit="sprints")

    def to_timedelta(self) -> timedelta:
        """Signed day offset; a sprint is three calendar weeks."""
        if self.unit == "sprints":
            return timedelta(weeks=self.count * WEEKS_PER_SPRINT)
        return timedelta(weeks=self.count)

    def __mul__(self, factor: int) -> "Duration":
        if not isinstance(factor, int):
            return NotImplemented
        return Duration(count=self.count * factor, unit=self.unit)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"{self.count} {self.unit}"


@dataclass
class Milestone:
    """Named point in time; relations refer to it by alias."""

    name: str
    alias: str
    due_date: date | None = None


@dataclass(frozen=True)
class MilestoneRelation:
    """`milestone` is `direction` `target` by `by`."""

    milestone: str
    direction: Direction
    target: str
    by: Duration

    @property
    def direction_label(self) -> str:
        return _DIRECTION_LABELS[self.direction]

    def apply(self, target_date: date) -> date:
        """Date the related milestone falls on given its target's date."""
        if self.direction == "Behind":
            return target_date - self.by.to_timedelta()
        return target_date + self.by.to_timedelta()

    def __str__(self) -> str:
        return f"{self.milestone} {self.direction_label} {self.target}: {self.by}"


@dataclass
class MilestoneGenerator:
    """
    Template for a numbered series of milestones.

    Expands into `count` milestones aliased `{alias}1..{alias}N`, each related to
    `delta_template.target` by `delta_template.by` scaled by its 1-based index.
    """

    name: str
    count: int
    delta_template: MilestoneRelation
    milestone_template: Milestone

    def expand(self) -> tuple[list[Milestone], list[MilestoneRelation]]:
        milestones: list[Milestone] = []
        relations: list[MilestoneRelation] = []
        for index in range(1, self.count + 1):
            alias = f"{self.milestone_template.alias}{index}"
            milestones.append(
                Milestone(
                    name=f"{self.milestone_template.name}{index}",
                    alias=alias,
                    due_date=None,
                )
            )
            relations.append(
                MilestoneRelation(
                    milestone=alias,
                    direction=self.delta_template.direction,
                    target=self.delta_template.target,
                    by=self.delta_template.by * index,
                )
            )
        return milestones, relations


@dataclass
class Phase:
    """Named group of milestones, optionally carrying generators."""

    name: str
    milestones: list[Milestone] = field(default_factory=list)
    milestone_generators: list[MilestoneGenerator] | None = None


@dataclass
class Schedule:
    """Phases plus the flat list of relations between their milestones."""

    phases: list[Phase] = field(default_factory=list)
    milestone_deltas: list[MilestoneRelation] = field(default_factory=list)

    def iter_milestones(self) -> Iterator[Milestone]:
        """All milestones in phase-then-milestone order."""
        for phase in self.phases:
            yield from phase.milestones

    @property
    def dated_count(self) -> int:
        return sum(1 for milestone in self.iter_milestones() if milestone.due_date is not None)


@dataclass
class Document:
    """Persisted unit: the undated `spec` template plus the computed `status`."""

    kind: str
    spec: Schedule
    metadata: dict[str, str] = field(default_factory=dict)
    status: Schedule | None = None


@dataclass
class FlatRenderRow:
    """
    Flattened view of a schedule used by the chart renderer.

    Phase headings carry no date; lozenge rows carry the milestone due date (if
    resolved) and the aliases of the milestones it was derived from.
    """

    order: int
    indent: int
    node_type: NodeKind
    node_id: str
    name: str
    phase: str
    depends_on: list[str] = field(default_factory=list)
    due_date: date | None = None


def example_document() -> Document:
    """Release skeleton with the usual four phases and no dates."""

    phases = [
        Phase(
            name="Planning",
            milestones=[Milestone("Requirements Gathering", "RG"), Milestone("Requirements Freeze", "RF")],
        ),
        Phase(
            name="Development",
            milestones=[Milestone("Feature Start", "FS"), Milestone("Feature Freeze", "FF")],
            milestone_generators=[
                MilestoneGenerator(
                    name="Sprints",
                    count=6,
                    # Negative offset: each sprint end lands after Requirements Freeze.
                    delta_template=MilestoneRelation("", "Behind", "RF", Duration.sprints(-1)),
                    milestone_template=Milestone("Sprint ", "S"),
                )
            ],
        ),
        Phase(
            name="Testing",
            milestones=[Milestone("Blockers Only", "BO"), Milestone("Code Freeze", "CF")],
        ),
        Phase(
            name="Release",
            milestones=[Milestone("Push to Stage", "PS"), Milestone("General Availability", "GA")],
        ),
    ]
    deltas = [
        MilestoneRelation("CF", "Behind", "GA", Duration.weeks(4)),
        MilestoneRelation("BO", "Behind", "CF", Duration.sprints(1)),
        MilestoneRelation("FF", "Behind", "BO", Duration.sprints(1)),
        MilestoneRelation("RF", "Behind", "FF", Duration.sprints(6)),
    ]
    return Document(
        kind="Schedule",
        metadata={"name": "TBD"},
        spec=Schedule(phases=phases, milestone_deltas=deltas),
    )
