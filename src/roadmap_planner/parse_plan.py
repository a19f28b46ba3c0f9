from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .calendar_axis import parse_date
from .config import (
    DEFAULT_COLOR_TAG,
    DEFAULT_MODE,
    DEFAULT_PROGRAM_START,
    DEFAULT_VIEW_WEEKS,
    FREQUENCY_DAYS,
    RECURRING_MILESTONE_TYPE,
    VIEW_MODES,
)
from .errors import DuplicateDependency, InvalidDate, PlanValidationError, SelfDependency
from .plan_models import (
    Activity,
    Component,
    Dependency,
    Milestone,
    Plan,
    PointMilestone,
    RecurringMilestone,
    ViewWindow,
)


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like activities[0].duration."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


@dataclass(frozen=True)
class PlanDocument:
    """A loaded snapshot plus the view mode it asked for."""

    plan: Plan
    mode: str = DEFAULT_MODE


def load_plan(path: str) -> PlanDocument:
    """Load a plan snapshot from a YAML file at the given path (no propagation)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_plan(raw)


def parse_plan(data: Any) -> PlanDocument:
    """Build a snapshot from already-decoded YAML/JSON data."""
    return _parse_document(data, _Path())


def plan_to_dict(plan: Plan, mode: str = DEFAULT_MODE) -> dict[str, Any]:
    """Plain structure mirroring the YAML layout; ids are preserved."""

    return {
        "view": {
            "program_start": plan.view.program_start.isoformat(),
            "view_weeks": plan.view.view_weeks,
            "pixels_per_week": plan.view.pixels_per_week,
            "mode": mode,
        },
        "components": [{"id": c.id, "name": c.name, "color": c.color_tag} for c in plan.components],
        "activities": [
            {
                "id": a.id,
                "component": a.component_id,
                "name": a.name,
                "start_week": a.start_week,
                "duration": a.duration,
            }
            for a in plan.activities
        ],
        "dependencies": [{"id": d.id, "from": d.from_id, "to": d.to_id, "type": d.kind} for d in plan.dependencies],
        "milestones": [_milestone_to_dict(m) for m in plan.milestones],
    }


def _milestone_to_dict(milestone: Milestone) -> dict[str, Any]:
    if isinstance(milestone, RecurringMilestone):
        return {
            "id": milestone.id,
            "name": milestone.name,
            "type": milestone.kind,
            "start_date": _date_text(milestone.start_date),
            "end_date": _date_text(milestone.end_date),
            "frequency": milestone.frequency,
        }
    return {"id": milestone.id, "name": milestone.name, "type": milestone.kind, "date": _date_text(milestone.date)}


def _date_text(value: Any) -> Any:
    return value.isoformat() if isinstance(value, _dt.date) else value


def _parse_document(data: Any, path: _Path) -> PlanDocument:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"view", "components", "activities", "dependencies", "milestones"}, path)

    view, mode = _parse_view(data.get("view"), path.child("view"))
    ids: set[str] = set()

    components = [
        _parse_component(raw, path.child(f"components[{idx}]"), ids)
        for idx, raw in enumerate(_optional_list(data, "components", path))
    ]
    component_ids = {c.id for c in components}

    activities = [
        _parse_activity(raw, path.child(f"activities[{idx}]"), ids, component_ids)
        for idx, raw in enumerate(_optional_list(data, "activities", path))
    ]
    activity_ids = {a.id for a in activities}

    pairs: dict[tuple[str, str], str] = {}
    dependencies = [
        _parse_dependency(raw, path.child(f"dependencies[{idx}]"), ids, activity_ids, pairs)
        for idx, raw in enumerate(_optional_list(data, "dependencies", path))
    ]

    milestones = [
        _parse_milestone(raw, path.child(f"milestones[{idx}]"), ids)
        for idx, raw in enumerate(_optional_list(data, "milestones", path))
    ]

    plan = Plan(
        components=tuple(components),
        activities=tuple(activities),
        dependencies=tuple(dependencies),
        milestones=tuple(milestones),
        view=view,
    )
    return PlanDocument(plan=plan, mode=mode)


def _parse_view(data: Any, path: _Path) -> tuple[ViewWindow, str]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for view")
    _assert_allowed_keys(data, {"program_start", "view_weeks", "pixels_per_week", "mode"}, path)

    mode = data.get("mode", DEFAULT_MODE)
    if mode not in VIEW_MODES:
        raise PlanValidationError(f"{path.child('mode')}: expected one of {sorted(VIEW_MODES)}")
    settings = VIEW_MODES[mode]

    program_start = DEFAULT_PROGRAM_START
    if "program_start" in data:
        program_start = parse_date(data["program_start"], where=str(path.child("program_start")))

    view_weeks = data.get("view_weeks", DEFAULT_VIEW_WEEKS)
    if not _is_int(view_weeks) or view_weeks <= 0:
        raise PlanValidationError(f"{path.child('view_weeks')}: expected positive integer")

    pixels_per_week = data.get("pixels_per_week", settings.pixels_per_week)
    if isinstance(pixels_per_week, bool) or not isinstance(pixels_per_week, (int, float)) or pixels_per_week <= 0:
        raise PlanValidationError(f"{path.child('pixels_per_week')}: expected positive number")

    view = ViewWindow(
        program_start=program_start,
        view_weeks=max(view_weeks, settings.min_view_weeks),
        pixels_per_week=float(pixels_per_week),
    )
    return view, mode


def _parse_component(data: Any, path: _Path, ids: set[str]) -> Component:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for component")
    _assert_allowed_keys(data, {"id", "name", "color"}, path)
    component_id = _require_id(data, path, ids)
    name = _require_str(data, "name", path)
    color = data.get("color", DEFAULT_COLOR_TAG)
    if not isinstance(color, str):
        raise PlanValidationError(f"{path.child('color')}: expected string")
    return Component(id=component_id, name=name, color_tag=color)


def _parse_activity(data: Any, path: _Path, ids: set[str], component_ids: set[str]) -> Activity:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for activity")
    _assert_allowed_keys(data, {"id", "component", "name", "start_week", "duration"}, path)
    activity_id = _require_id(data, path, ids)
    component_id = _require_str(data, "component", path)
    if component_id not in component_ids:
        raise PlanValidationError(f"{path.child('component')}: unknown component '{component_id}'")
    name = _require_str(data, "name", path)

    start_week = data.get("start_week", 0)
    if not _is_int(start_week) or start_week < 0:
        raise PlanValidationError(f"{path.child('start_week')}: expected integer >= 0")
    duration = _require_value(data, "duration", path)
    if not _is_int(duration) or duration < 1:
        raise PlanValidationError(f"{path.child('duration')}: expected integer >= 1")

    return Activity(id=activity_id, component_id=component_id, name=name, start_week=start_week, duration=duration)


def _parse_dependency(
    data: Any,
    path: _Path,
    ids: set[str],
    activity_ids: set[str],
    pairs: dict[tuple[str, str], str],
) -> Dependency:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for dependency")
    _assert_allowed_keys(data, {"id", "from", "to", "type"}, path)
    dependency_id = _require_id(data, path, ids)
    from_id = _require_str(data, "from", path)
    to_id = _require_str(data, "to", path)
    for key, ref in (("from", from_id), ("to", to_id)):
        if ref not in activity_ids:
            raise PlanValidationError(f"{path.child(key)}: unknown activity '{ref}'")
    if from_id == to_id:
        raise SelfDependency(from_id, where=str(path))
    if (from_id, to_id) in pairs:
        raise DuplicateDependency(from_id, to_id, pairs[(from_id, to_id)], where=str(path))
    pairs[(from_id, to_id)] = dependency_id

    kind = data.get("type", "normal")
    if kind not in ("blocker", "normal"):
        raise PlanValidationError(f"{path.child('type')}: expected 'blocker' or 'normal'")
    return Dependency(id=dependency_id, from_id=from_id, to_id=to_id, kind=kind)


def _parse_milestone(data: Any, path: _Path, ids: set[str]) -> Milestone:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for milestone")
    milestone_id = _require_id(data, path, ids)
    name = _require_str(data, "name", path)
    kind = _require_str(data, "type", path)

    if kind == RECURRING_MILESTONE_TYPE:
        _assert_allowed_keys(data, {"id", "name", "type", "start_date", "end_date", "frequency"}, path)
        start_date = _raw_date(_require_value(data, "start_date", path), path.child("start_date"))
        end_date = _raw_date(_require_value(data, "end_date", path), path.child("end_date"))
        frequency = data.get("frequency", "weekly")
        if frequency not in FREQUENCY_DAYS:
            raise PlanValidationError(f"{path.child('frequency')}: expected one of {sorted(FREQUENCY_DAYS)}")
        return RecurringMilestone(
            id=milestone_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            frequency=frequency,
        )

    _assert_allowed_keys(data, {"id", "name", "type", "date"}, path)
    date = _raw_date(_require_value(data, "date", path), path.child("date"))
    return PointMilestone(id=milestone_id, name=name, kind=kind, date=date)


def _raw_date(value: Any, path: _Path) -> Any:
    # Dates stay raw so an unparseable one surfaces at expansion, not here.
    if isinstance(value, (str, _dt.date)):
        return value
    raise InvalidDate(value, str(path))


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise PlanValidationError(f"{path.child(key)}: expected list")
    return value


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise PlanValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise PlanValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise PlanValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_id(data: dict[str, Any], path: _Path, ids: set[str]) -> str:
    value = _require_str(data, "id", path)
    if value in ids:
        raise PlanValidationError(f"{path.child('id')}: duplicate id '{value}'")
    ids.add(value)
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
