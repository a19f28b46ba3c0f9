from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .calendar_axis import month_buckets, quarter_buckets, week_buckets
from .config import DEFAULT_METRICS, DEFAULT_MODE, LayoutMetrics
from .lanes import TimelineLayout, layout_tracks
from .plan_models import CalendarBucket, MilestoneOccurrence, Plan, RiskFinding
from .recurrence import MilestoneExpansion, expand_milestones, hidden_types_for_mode
from .risk import evaluate_risks
from .scheduling import PropagationResult, propagate_plan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    plan: Plan
    propagation: PropagationResult


@dataclass(frozen=True)
class DerivedView:
    """Everything a renderer needs for one snapshot; never stored, always rebuilt."""

    layout: TimelineLayout
    risks: list[RiskFinding]
    milestones: MilestoneExpansion
    buckets: dict[str, list[CalendarBucket]]

    @property
    def lane_assignments(self) -> dict[str, int]:
        return {activity_id: geo.lane for activity_id, geo in self.layout.activities.items()}

    @property
    def track_heights(self) -> dict[str, float]:
        return {component_id: track.height for component_id, track in self.layout.tracks.items()}

    @property
    def occurrences(self) -> list[MilestoneOccurrence]:
        return self.milestones.occurrences


def commit(plan: Plan, strict: bool = False) -> CommitResult:
    """Settle dependencies on a freshly mutated snapshot."""
    settled, result = propagate_plan(plan, strict=strict)
    if not result.satisfied:
        logger.warning("Committed plan still has unsatisfied dependencies")
    return CommitResult(plan=settled, propagation=result)


def apply(plan: Plan, mutation: Callable[..., Plan], *args: Any, **kwargs: Any) -> CommitResult:
    """Run one mutation from `mutations` and commit the result in a single step."""
    return commit(mutation(plan, *args, **kwargs))


@functools.lru_cache(maxsize=1)
def derive_view(plan: Plan, mode: str = DEFAULT_MODE, metrics: LayoutMetrics = DEFAULT_METRICS) -> DerivedView:
    """
    Derive lanes, track heights, risks, milestone occurrences and axis buckets.

    Only the most recent snapshot is memoized; the snapshot is immutable,
    so a cache hit can never be stale.
    """

    view = plan.view
    layout = layout_tracks(plan, metrics)
    milestones = expand_milestones(plan.milestones, view, hidden_types=hidden_types_for_mode(mode))
    buckets = {
        "weeks": week_buckets(view.program_start, view.view_weeks),
        "months": month_buckets(view.program_start, view.view_weeks),
        "quarters": quarter_buckets(view.program_start, view.view_weeks),
    }
    logger.debug(
        "Derived view: %d tracks, %d milestone occurrences",
        len(layout.tracks),
        len(milestones.occurrences),
    )
    return DerivedView(
        layout=layout,
        risks=evaluate_risks(plan.activities, view.view_weeks),
        milestones=milestones,
        buckets=buckets,
    )
