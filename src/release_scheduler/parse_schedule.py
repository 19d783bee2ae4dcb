from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .schedule_models import (
    Document,
    Duration,
    Milestone,
    MilestoneGenerator,
    MilestoneRelation,
    Phase,
    Schedule,
)
from .scheduling import ScheduleValidationError

_DIRECTIONS = ("Behind", "AheadOf")
_DURATION_UNITS = ("weeks", "sprints")


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like spec.phases[0].milestones[1]."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_document(path: str) -> Document:
    """Load a Document from a YAML file at the given path (no replanning)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_document(raw)


def parse_document(data: Any) -> Document:
    path = _Path()
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping at top level")

    _assert_allowed_keys(data, {"kind", "metadata", "spec", "status"}, path)
    kind = _require_str(data, "kind", path)
    metadata = _parse_metadata(data.get("metadata"), path.child("metadata"))
    spec = _parse_schedule(_require_value(data, "spec", path), path.child("spec"))

    status = None
    if data.get("status") is not None:
        status = _parse_schedule(data["status"], path.child("status"))

    return Document(kind=kind, metadata=metadata, spec=spec, status=status)


def _parse_schedule(data: Any, path: _Path) -> Schedule:
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for schedule")

    _assert_allowed_keys(data, {"phases", "milestone_deltas"}, path)
    phases_raw = _require_list(data, "phases", path)
    phases = [_parse_phase(raw, path.child(f"phases[{idx}]")) for idx, raw in enumerate(phases_raw)]

    deltas_raw = data.get("milestone_deltas")
    if deltas_raw is None:
        deltas_raw = []
    if not isinstance(deltas_raw, list):
        raise ScheduleValidationError(f"{path}.milestone_deltas: expected list")
    deltas = [
        _parse_relation(raw, path.child(f"milestone_deltas[{idx}]")) for idx, raw in enumerate(deltas_raw)
    ]

    return Schedule(phases=phases, milestone_deltas=deltas)


def _parse_phase(data: Any, path: _Path) -> Phase:
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for phase")

    _assert_allowed_keys(data, {"name", "milestones", "milestone_generators"}, path)
    name = _require_str(data, "name", path)
    milestones_raw = _require_list(data, "milestones", path)
    milestones = [
        _parse_milestone(raw, path.child(f"milestones[{idx}]")) for idx, raw in enumerate(milestones_raw)
    ]

    generators = None
    if data.get("milestone_generators") is not None:
        generators_raw = data["milestone_generators"]
        if not isinstance(generators_raw, list):
            raise ScheduleValidationError(f"{path}.milestone_generators: expected list")
        generators = [
            _parse_generator(raw, path.child(f"milestone_generators[{idx}]"))
            for idx, raw in enumerate(generators_raw)
        ]

    return Phase(name=name, milestones=milestones, milestone_generators=generators)


def _parse_milestone(data: Any, path: _Path) -> Milestone:
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for milestone")

    _assert_allowed_keys(data, {"name", "alias", "due_date"}, path)
    due_date = None
    if data.get("due_date") is not None:
        due_date = _parse_date(data["due_date"], path.child("due_date"))
    return Milestone(
        name=_require_str(data, "name", path),
        alias=_require_str(data, "alias", path),
        due_date=due_date,
    )


def _parse_relation(data: Any, path: _Path, template: bool = False) -> MilestoneRelation:
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for milestone relation")

    _assert_allowed_keys(data, {"milestone", "is", "target", "by"}, path)
    # Generators overwrite the milestone alias of their delta template.
    milestone = (data.get("milestone") or "") if template else _require_str(data, "milestone", path)
    if not isinstance(milestone, str):
        raise ScheduleValidationError(f"{path.child('milestone')}: expected string")

    direction = _require_value(data, "is", path)
    if direction not in _DIRECTIONS:
        raise ScheduleValidationError(f"{path.child('is')}: expected one of {list(_DIRECTIONS)}")

    return MilestoneRelation(
        milestone=milestone,
        direction=direction,
        target=_require_str(data, "target", path),
        by=_parse_duration(_require_value(data, "by", path), path.child("by")),
    )


def _parse_generator(data: Any, path: _Path) -> MilestoneGenerator:
    if not isinstance(data, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for milestone generator")

    _assert_allowed_keys(data, {"name", "count", "delta_template", "milestone_template"}, path)
    count = _require_value(data, "count", path)
    if not _is_int(count) or count < 0:
        raise ScheduleValidationError(f"{path.child('count')}: expected non-negative integer")

    return MilestoneGenerator(
        name=_require_str(data, "name", path),
        count=count,
        delta_template=_parse_relation(
            _require_value(data, "delta_template", path), path.child("delta_template"), template=True
        ),
        milestone_template=_parse_milestone(
            _require_value(data, "milestone_template", path), path.child("milestone_template")
        ),
    )


def _parse_duration(data: Any, path: _Path) -> Duration:
    if not isinstance(data, dict) or len(data) != 1:
        raise ScheduleValidationError(f"{path}: expected mapping with exactly one of {list(_DURATION_UNITS)}")

    unit, count = next(iter(data.items()))
    if unit not in _DURATION_UNITS:
        raise ScheduleValidationError(f"{path}: unknown duration unit '{unit}'")
    if not _is_int(count):
        raise ScheduleValidationError(f"{path.child(unit)}: expected integer")
    return Duration(count=count, unit=unit)


def _parse_metadata(value: Any, path: _Path) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ScheduleValidationError(f"{path}: expected mapping for metadata")
    metadata: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise ScheduleValidationError(f"{path.child(str(key))}: expected string value")
        metadata[key] = item
    return metadata


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise ScheduleValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ScheduleValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = _require_value(data, key, path)
    if not isinstance(value, list):
        raise ScheduleValidationError(f"{path.child(key)}: expected list")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ScheduleValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # safe_load already turns unquoted YYYY-MM-DD scalars into dates.
    if isinstance(value, _dt.datetime):
        raise ScheduleValidationError(f"{path}: expected YYYY-MM-DD date, got a timestamp")
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise ScheduleValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        return _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ScheduleValidationError(f"{path}: expected YYYY-MM-DD string") from exc


def document_to_dict(document: Document) -> dict[str, Any]:
    """Plain-data form of a document; unset due dates and absent sections are omitted."""

    data: dict[str, Any] = {
        "kind": document.kind,
        "metadata": dict(document.metadata),
        "spec": _schedule_to_dict(document.spec),
    }
    if document.status is not None:
        data["status"] = _schedule_to_dict(document.status)
    return data


def dump_document_yaml(document: Document) -> str:
    return yaml.safe_dump(document_to_dict(document), sort_keys=False, allow_unicode=True)


def _schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    return {
        "phases": [_phase_to_dict(phase) for phase in schedule.phases],
        "milestone_deltas": [_relation_to_dict(relation) for relation in schedule.milestone_deltas],
    }


def _phase_to_dict(phase: Phase) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": phase.name,
        "milestones": [_milestone_to_dict(milestone) for milestone in phase.milestones],
    }
    if phase.milestone_generators is not None:
        data["milestone_generators"] = [
            {
                "name": generator.name,
                "count": generator.count,
                "delta_template": _relation_to_dict(generator.delta_template),
                "milestone_template": _milestone_to_dict(generator.milestone_template),
            }
            for generator in phase.milestone_generators
        ]
    return data


def _milestone_to_dict(milestone: Milestone) -> dict[str, Any]:
    data: dict[str, Any] = {"name": milestone.name, "alias": milestone.alias}
    if milestone.due_date is not None:
        data["due_date"] = milestone.due_date
    return data


def _relation_to_dict(relation: MilestoneRelation) -> dict[str, Any]:
    return {
        "milestone": relation.milestone,
        "is": relation.direction,
        "target": relation.target,
        "by": {relation.by.unit: relation.by.count},
    }
