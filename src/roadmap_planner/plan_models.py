from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Literal

from .config import DEFAULT_PROGRAM_START, DEFAULT_VIEW_WEEKS, FREQUENCY_DAYS, RECURRING_MILESTONE_TYPE, VIEW_MODES
from .errors import PlanValidationError


DependencyKind = Literal["blocker", "normal"]
"""Edge styling: blockers draw solid, normal edges dashed. Scheduling treats both the same."""

Frequency = Literal["weekly", "biweekly"]

DateLike = Any
"""Raw milestone date as stored: a datetime.date or an ISO string, parsed lazily."""


@dataclass(frozen=True)
class Component:
    """Horizontal track that owns a set of activities."""

    id: str
    name: str
    color_tag: str = "slate"


@dataclass(frozen=True)
class Activity:
    """Schedulable work item placed on a track, measured in whole weeks from program start."""

    id: str
    component_id: str
    name: str
    start_week: int = 0
    duration: int = 1

    def __post_init__(self) -> None:
        if not _is_int(self.start_week) or self.start_week < 0:
            raise PlanValidationError(f"activity '{self.id}': start_week must be an integer >= 0, got {self.start_week!r}")
        if not _is_int(self.duration) or self.duration < 1:
            raise PlanValidationError(f"activity '{self.id}': duration must be an integer >= 1, got {self.duration!r}")

    @property
    def end_week(self) -> int:
        """Exclusive end week derived from start_week and duration."""
        return self.start_week + self.duration


@dataclass(frozen=True)
class Dependency:
    """Directed precedence edge: `to_id` may not start before `from_id` ends."""

    id: str
    from_id: str
    to_id: str
    kind: DependencyKind = "normal"

    @property
    def is_blocker(self) -> bool:
        return self.kind == "blocker"


@dataclass(frozen=True)
class PointMilestone:
    """One-off checkpoint on a single date."""

    id: str
    name: str
    kind: str
    date: DateLike


@dataclass(frozen=True)
class RecurringMilestone:
    """Generator of dated occurrences between start_date and end_date (inclusive)."""

    id: str
    name: str
    start_date: DateLike
    end_date: DateLike
    frequency: Frequency = "weekly"
    kind: str = RECURRING_MILESTONE_TYPE

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCY_DAYS:
            raise PlanValidationError(
                f"milestone '{self.id}': unknown frequency {self.frequency!r}, expected one of {sorted(FREQUENCY_DAYS)}"
            )


Milestone = PointMilestone | RecurringMilestone


@dataclass(frozen=True)
class ViewWindow:
    """Visible time range and pixel scale shared by every geometry derivation."""

    program_start: dt.date = DEFAULT_PROGRAM_START
    view_weeks: int = DEFAULT_VIEW_WEEKS
    pixels_per_week: float = VIEW_MODES["weeks"].pixels_per_week

    def __post_init__(self) -> None:
        if not isinstance(self.program_start, dt.date):
            raise PlanValidationError(f"view: program_start must be a date, got {self.program_start!r}")
        if not _is_int(self.view_weeks) or self.view_weeks <= 0:
            raise PlanValidationError(f"view: view_weeks must be a positive integer, got {self.view_weeks!r}")
        if isinstance(self.pixels_per_week, bool) or not isinstance(self.pixels_per_week, (int, float)) or self.pixels_per_week <= 0:
            raise PlanValidationError(f"view: pixels_per_week must be positive, got {self.pixels_per_week!r}")


@dataclass(frozen=True)
class Plan:
    """
    Immutable snapshot of the whole roadmap.

    Component order is the vertical stacking order. Mutations never edit a
    snapshot; they build a new one (see `mutations`).
    """

    components: tuple[Component, ...] = ()
    activities: tuple[Activity, ...] = ()
    dependencies: tuple[Dependency, ...] = ()
    milestones: tuple[Milestone, ...] = ()
    view: ViewWindow = field(default_factory=ViewWindow)

    def component(self, component_id: str) -> Component | None:
        return next((c for c in self.components if c.id == component_id), None)

    def activity(self, activity_id: str) -> Activity | None:
        return next((a for a in self.activities if a.id == activity_id), None)

    def milestone(self, milestone_id: str) -> Milestone | None:
        return next((m for m in self.milestones if m.id == milestone_id), None)

    def activities_for(self, component_id: str) -> list[Activity]:
        """Activities of one track, in snapshot order."""
        return [a for a in self.activities if a.component_id == component_id]

    def dependencies_of(self, activity_id: str) -> list[Dependency]:
        """Edges that end at the given activity (its predecessors)."""
        return [d for d in self.dependencies if d.to_id == activity_id]


@dataclass(frozen=True)
class CalendarBucket:
    """One labelled span of the time axis, in (possibly fractional) weeks from program start."""

    label: str
    start_week_offset: float
    width_weeks: float
    start_date: dt.date
    date_label: str | None = None


@dataclass(frozen=True)
class ActivityGeometry:
    """Pixel placement of one activity; `local_top` is relative to its track, `absolute_top` to the chart."""

    activity_id: str
    component_id: str
    lane: int
    local_top: float
    absolute_top: float
    center_y: float
    left: float
    width: float


@dataclass(frozen=True)
class TrackLayout:
    component_id: str
    top: float
    height: float
    lane_count: int
    activity_count: int


@dataclass(frozen=True)
class RiskFinding:
    level: str
    message: str
    activity_id: str


@dataclass(frozen=True)
class MilestoneOccurrence:
    """A milestone placed on the axis; recurring definitions produce one per step."""

    milestone: Milestone
    occurrence_date: dt.date
    week_offset: float
    is_recurring: bool

    @property
    def name(self) -> str:
        return self.milestone.name

    @property
    def kind(self) -> str:
        return self.milestone.kind


@dataclass(frozen=True)
class ActivityPatch:
    """Proposed schedule change for one activity, produced by a drag gesture."""

    activity_id: str
    start_week: int
    duration: int


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
