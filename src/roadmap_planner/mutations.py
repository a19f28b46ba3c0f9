from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any

from .calendar_axis import parse_date
from .config import (
    DEFAULT_ACTIVITY_DURATION,
    DEFAULT_COLOR_TAG,
    FREQUENCY_DAYS,
    MAX_COMPONENTS,
    RECURRING_MILESTONE_TYPE,
    mode_settings,
)
from .errors import (
    ComponentLimitReached,
    DuplicateDependency,
    PlanValidationError,
    SelfDependency,
    UnknownEntity,
)
from .plan_models import (
    Activity,
    ActivityPatch,
    Component,
    Dependency,
    Milestone,
    Plan,
    PointMilestone,
    RecurringMilestone,
    ViewWindow,
)

logger = logging.getLogger(__name__)

_ACTIVITY_FIELDS = {"name", "start_week", "duration", "component_id"}
_POINT_FIELDS = {"name", "kind", "date"}
_RECURRING_FIELDS = {"name", "kind", "start_date", "end_date", "frequency"}


def new_id(taken: set[str] | None = None) -> str:
    """Short random id, unique among `taken`."""
    taken = taken or set()
    while True:
        candidate = uuid.uuid4().hex[:9]
        if candidate not in taken:
            return candidate


# -- components ---------------------------------------------------------------


def add_component(
    plan: Plan,
    name: str,
    color_tag: str = DEFAULT_COLOR_TAG,
    component_id: str | None = None,
) -> Plan:
    if len(plan.components) >= MAX_COMPONENTS:
        raise ComponentLimitReached(f"a plan holds at most {MAX_COMPONENTS} components")
    name = _require_name(name, "component")
    component_id = component_id or new_id(_all_ids(plan))
    if plan.component(component_id) is not None:
        raise PlanValidationError(f"duplicate component id '{component_id}'")
    component = Component(id=component_id, name=name, color_tag=color_tag)
    return dataclasses.replace(plan, components=plan.components + (component,))


def rename_component(plan: Plan, component_id: str, name: str) -> Plan:
    component = _require_component(plan, component_id)
    renamed = dataclasses.replace(component, name=_require_name(name, "component"))
    return dataclasses.replace(plan, components=_swap(plan.components, component_id, renamed))


def remove_component(plan: Plan, component_id: str) -> Plan:
    """Drop a track together with its activities and every edge touching them."""
    _require_component(plan, component_id)
    doomed = {a.id for a in plan.activities if a.component_id == component_id}
    logger.debug("Removing component '%s' with %d activities", component_id, len(doomed))
    return dataclasses.replace(
        plan,
        components=tuple(c for c in plan.components if c.id != component_id),
        activities=tuple(a for a in plan.activities if a.id not in doomed),
        dependencies=tuple(d for d in plan.dependencies if d.from_id not in doomed and d.to_id not in doomed),
    )


# -- activities ---------------------------------------------------------------


def add_activity(
    plan: Plan,
    component_id: str,
    name: str,
    start_week: int = 0,
    duration: int = DEFAULT_ACTIVITY_DURATION,
    activity_id: str | None = None,
) -> Plan:
    _require_component(plan, component_id)
    activity_id = activity_id or new_id(_all_ids(plan))
    if plan.activity(activity_id) is not None:
        raise PlanValidationError(f"duplicate activity id '{activity_id}'")
    activity = Activity(
        id=activity_id,
        component_id=component_id,
        name=_require_name(name, "activity"),
        start_week=start_week,
        duration=duration,
    )
    return dataclasses.replace(plan, activities=plan.activities + (activity,))


def update_activity(plan: Plan, activity_id: str, **changes: Any) -> Plan:
    """Edit name, start_week, duration or component_id of one activity."""
    activity = _require_activity(plan, activity_id)
    _assert_allowed(changes, _ACTIVITY_FIELDS, f"activity '{activity_id}'")
    if "name" in changes:
        changes["name"] = _require_name(changes["name"], "activity")
    if "component_id" in changes:
        _require_component(plan, changes["component_id"])
    updated = dataclasses.replace(activity, **changes)
    return dataclasses.replace(plan, activities=_swap(plan.activities, activity_id, updated))


def apply_patch(plan: Plan, patch: ActivityPatch) -> Plan:
    """Commit a drag proposal through the same path as a direct edit."""
    return update_activity(plan, patch.activity_id, start_week=patch.start_week, duration=patch.duration)


def remove_activity(plan: Plan, activity_id: str) -> Plan:
    _require_activity(plan, activity_id)
    return dataclasses.replace(
        plan,
        activities=tuple(a for a in plan.activities if a.id != activity_id),
        dependencies=tuple(d for d in plan.dependencies if activity_id not in (d.from_id, d.to_id)),
    )


# -- dependencies -------------------------------------------------------------


def add_dependency(
    plan: Plan,
    from_id: str,
    to_id: str,
    blocker: bool = False,
    dependency_id: str | None = None,
) -> Plan:
    """
    Add a precedence edge `from_id -> to_id`.

    Raises SelfDependency or DuplicateDependency instead of adding; the
    caller's snapshot is untouched either way.
    """

    if from_id == to_id:
        raise SelfDependency(from_id)
    _require_activity(plan, from_id)
    _require_activity(plan, to_id)
    existing = next((d for d in plan.dependencies if d.from_id == from_id and d.to_id == to_id), None)
    if existing is not None:
        raise DuplicateDependency(from_id, to_id, existing.id)
    dependency_id = dependency_id or new_id(_all_ids(plan))
    if any(d.id == dependency_id for d in plan.dependencies):
        raise PlanValidationError(f"duplicate dependency id '{dependency_id}'")
    edge = Dependency(id=dependency_id, from_id=from_id, to_id=to_id, kind="blocker" if blocker else "normal")
    return dataclasses.replace(plan, dependencies=plan.dependencies + (edge,))


def remove_dependency(plan: Plan, dependency_id: str) -> Plan:
    if not any(d.id == dependency_id for d in plan.dependencies):
        raise UnknownEntity(f"unknown dependency '{dependency_id}'")
    return dataclasses.replace(plan, dependencies=tuple(d for d in plan.dependencies if d.id != dependency_id))


# -- milestones ---------------------------------------------------------------


def add_milestone(
    plan: Plan,
    name: str = "New Milestone",
    kind: str = "Go-Live",
    when: Any = None,
    milestone_id: str | None = None,
) -> Plan:
    """Add a point milestone; the date defaults to the program start."""
    if kind == RECURRING_MILESTONE_TYPE:
        start = when if when is not None else plan.view.program_start.isoformat()
        return add_recurring_milestone(plan, name, start, start, milestone_id=milestone_id)
    milestone_id = _new_milestone_id(plan, milestone_id)
    date = when if when is not None else plan.view.program_start.isoformat()
    milestone = PointMilestone(id=milestone_id, name=_require_name(name, "milestone"), kind=kind, date=date)
    return dataclasses.replace(plan, milestones=plan.milestones + (milestone,))


def add_recurring_milestone(
    plan: Plan,
    name: str,
    start_date: Any,
    end_date: Any,
    frequency: str = "weekly",
    milestone_id: str | None = None,
) -> Plan:
    _require_frequency(frequency)
    milestone_id = _new_milestone_id(plan, milestone_id)
    milestone = RecurringMilestone(
        id=milestone_id,
        name=_require_name(name, "milestone"),
        start_date=start_date,
        end_date=end_date,
        frequency=frequency,
    )
    return dataclasses.replace(plan, milestones=plan.milestones + (milestone,))


def update_milestone(plan: Plan, milestone_id: str, **changes: Any) -> Plan:
    """
    Edit a milestone in place.

    Switching `kind` to or from the recurring type converts the milestone:
    a point date becomes both ends of the range, and a range collapses to
    its start date.
    """

    milestone = plan.milestone(milestone_id)
    if milestone is None:
        raise UnknownEntity(f"unknown milestone '{milestone_id}'")
    _assert_allowed(changes, _POINT_FIELDS | _RECURRING_FIELDS, f"milestone '{milestone_id}'")
    if "name" in changes:
        changes["name"] = _require_name(changes["name"], "milestone")
    if "frequency" in changes:
        _require_frequency(changes["frequency"])

    kind = changes.get("kind", milestone.kind)
    updated: Milestone
    if kind == RECURRING_MILESTONE_TYPE:
        if isinstance(milestone, PointMilestone):
            anchor = changes.get("date", milestone.date)
            updated = RecurringMilestone(
                id=milestone.id,
                name=changes.get("name", milestone.name),
                start_date=changes.get("start_date", anchor),
                end_date=changes.get("end_date", anchor),
                frequency=changes.get("frequency", "weekly"),
            )
        else:
            _assert_allowed(changes, _RECURRING_FIELDS, f"milestone '{milestone_id}'")
            updated = dataclasses.replace(milestone, **changes)
    else:
        if isinstance(milestone, RecurringMilestone):
            updated = PointMilestone(
                id=milestone.id,
                name=changes.get("name", milestone.name),
                kind=kind,
                date=changes.get("date", milestone.start_date),
            )
        else:
            _assert_allowed(changes, _POINT_FIELDS, f"milestone '{milestone_id}'")
            updated = dataclasses.replace(milestone, **changes)

    return dataclasses.replace(plan, milestones=_swap(plan.milestones, milestone_id, updated))


def remove_milestone(plan: Plan, milestone_id: str) -> Plan:
    if plan.milestone(milestone_id) is None:
        raise UnknownEntity(f"unknown milestone '{milestone_id}'")
    return dataclasses.replace(plan, milestones=tuple(m for m in plan.milestones if m.id != milestone_id))


# -- view ---------------------------------------------------------------------


def set_view(
    plan: Plan,
    program_start: Any = None,
    view_weeks: int | None = None,
    pixels_per_week: float | None = None,
) -> Plan:
    view = plan.view
    view = ViewWindow(
        program_start=parse_date(program_start, where="view.program_start") if program_start is not None else view.program_start,
        view_weeks=view_weeks if view_weeks is not None else view.view_weeks,
        pixels_per_week=pixels_per_week if pixels_per_week is not None else view.pixels_per_week,
    )
    return dataclasses.replace(plan, view=view)


def apply_view_mode(plan: Plan, mode: str) -> Plan:
    """Switch axis granularity: sets the pixel scale and widens the window to the mode's minimum."""
    try:
        settings = mode_settings(mode)
    except ValueError as exc:
        raise PlanValidationError(str(exc)) from exc
    return set_view(
        plan,
        view_weeks=max(plan.view.view_weeks, settings.min_view_weeks),
        pixels_per_week=settings.pixels_per_week,
    )


# -- helpers ------------------------------------------------------------------


def _require_name(name: Any, what: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise PlanValidationError(f"{what} name must be a non-empty string")
    return name


def _require_component(plan: Plan, component_id: str) -> Component:
    component = plan.component(component_id)
    if component is None:
        raise UnknownEntity(f"unknown component '{component_id}'")
    return component


def _require_activity(plan: Plan, activity_id: str) -> Activity:
    activity = plan.activity(activity_id)
    if activity is None:
        raise UnknownEntity(f"unknown activity '{activity_id}'")
    return activity


def _require_frequency(frequency: Any) -> None:
    if frequency not in FREQUENCY_DAYS:
        raise PlanValidationError(f"unknown frequency {frequency!r}, expected one of {sorted(FREQUENCY_DAYS)}")


def _assert_allowed(changes: dict[str, Any], allowed: set[str], where: str) -> None:
    extras = sorted(set(changes) - allowed)
    if extras:
        raise PlanValidationError(f"{where}: unexpected fields {extras}")


def _new_milestone_id(plan: Plan, milestone_id: str | None) -> str:
    milestone_id = milestone_id or new_id(_all_ids(plan))
    if plan.milestone(milestone_id) is not None:
        raise PlanValidationError(f"duplicate milestone id '{milestone_id}'")
    return milestone_id


def _all_ids(plan: Plan) -> set[str]:
    ids = {c.id for c in plan.components}
    ids.update(a.id for a in plan.activities)
    ids.update(d.id for d in plan.dependencies)
    ids.update(m.id for m in plan.milestones)
    return ids


def _swap(items: tuple, item_id: str, replacement: Any) -> tuple:
    return tuple(replacement if item.id == item_id else item for item in items)
