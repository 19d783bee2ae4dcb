from __future__ import annotations

import yaml

from .schedule_models import Document, Milestone, MilestoneGenerator, Phase, Schedule

UNRESOLVED_DATE = "---------- ---"


def render_text(document: Document) -> str:
    """
    Render a document for humans.

    The spec is shown with its generators and baseline deltas; deltas are listed
    in reverse so the output reads from the earliest milestone to the latest.
    The status section lists phases only and is empty until the first replan.
    """

    lines: list[str] = ["# Kind", f"kind: {document.kind}", "# Metadata"]
    if document.metadata:
        lines.append(yaml.safe_dump(document.metadata, sort_keys=False, allow_unicode=True).rstrip("\n"))
    lines.append("# Spec")
    lines.extend(_schedule_lines(document.spec))
    lines.append("# Status")
    lines.append("## Phases & Milestones")
    if document.status is not None:
        for phase in document.status.phases:
            lines.extend(_phase_lines(phase))
    return "\n".join(lines) + "\n"


def _format_due_date(milestone: Milestone) -> str:
    if milestone.due_date is None:
        return UNRESOLVED_DATE
    return milestone.due_date.strftime("%Y-%m-%d %a")


def _schedule_lines(schedule: Schedule) -> list[str]:
    lines = ["## Phases & Milestones"]
    for phase in schedule.phases:
        lines.extend(_phase_lines(phase, with_generators=True))
    lines.append("## Baseline Deltas")
    for relation in reversed(schedule.milestone_deltas):
        lines.append(f"- {relation}")
    return lines


def _phase_lines(phase: Phase, with_generators: bool = False) -> list[str]:
    lines = [phase.name]
    for milestone in phase.milestones:
        lines.append(f" {_format_due_date(milestone)}   {milestone.alias}   {milestone.name}")
    if not with_generators:
        return lines
    for generator in phase.milestone_generators or []:
        lines.append(_generator_line(generator))
    return lines


def _generator_line(generator: MilestoneGenerator) -> str:
    return f" {generator.count}x {generator.name}"
