from __future__ import annotations

from typing import List

from .schedule_models import FlatRenderRow, Schedule
from .scheduling import MilestoneNotFoundError, find_milestone


def to_render_rows(schedule: Schedule) -> list[FlatRenderRow]:
    """
    Convert a dated Schedule into a flat list of render rows with indentation.

    Phase headings are emitted first, followed by their milestones in input order.
    Each milestone row lists the aliases of the targets of the relations that
    date it; relation ends may name milestones by alias or by name.
    """

    depends_on: dict[str, list[str]] = {}
    for relation in schedule.milestone_deltas:
        milestone_alias = _resolve_alias(schedule, relation.milestone)
        target_alias = _resolve_alias(schedule, relation.target)
        if milestone_alias is None or target_alias is None:
            continue
        depends_on.setdefault(milestone_alias, []).append(target_alias)

    rows: List[FlatRenderRow] = []
    order = 0

    for phase in schedule.phases:
        rows.append(
            FlatRenderRow(
                order=order,
                indent=0,
                node_type="phase",
                node_id=phase.name,
                name=phase.name,
                phase=phase.name,
            )
        )
        order += 1
        for milestone in phase.milestones:
            rows.append(
                FlatRenderRow(
                    order=order,
                    indent=1,
                    node_type="lozenge",
                    node_id=milestone.alias,
                    name=f"{milestone.alias}  {milestone.name}",
                    phase=phase.name,
                    depends_on=list(depends_on.get(milestone.alias, [])),
                    due_date=milestone.due_date,
                )
            )
            order += 1

    return rows


def _resolve_alias(schedule: Schedule, alias_or_name: str) -> str | None:
    try:
        return find_milestone(schedule, alias_or_name).alias
    except MilestoneNotFoundError:
        return None
