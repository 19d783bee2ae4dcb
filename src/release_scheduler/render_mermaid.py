from __future__ import annotations

from .schedule_models import Document


def render_mermaid(document: Document) -> str:
    """Render dated milestones as a fenced Mermaid gantt block; undated ones are left out."""

    schedule = document.status if document.status is not None else document.spec
    title = document.metadata.get("name") or document.kind

    lines = ["```mermaid", "gantt", f"    title {title}", "    dateFormat YYYY-MM-DD"]
    for phase in schedule.phases:
        dated = [milestone for milestone in phase.milestones if milestone.due_date is not None]
        if not dated:
            continue
        lines.append(f"    section {phase.name}")
        for milestone in dated:
            lines.append(
                f"       {milestone.name} :milestone, {milestone.alias}, {milestone.due_date.isoformat()}, 0d"
            )
    lines.append("```")
    return "\n".join(lines) + "\n"
