from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .config import DEFAULT_METRICS, LayoutMetrics
from .plan_models import Activity, ActivityGeometry, Plan, TrackLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanePacking:
    """Lane index per activity id for one track."""

    lanes: dict[str, int] = field(default_factory=dict)
    lane_count: int = 0


@dataclass(frozen=True)
class TimelineLayout:
    """Stacked geometry for every track and activity of a plan."""

    tracks: dict[str, TrackLayout]
    activities: dict[str, ActivityGeometry]
    total_height: float

    def lane_of(self, activity_id: str) -> int | None:
        geometry = self.activities.get(activity_id)
        return geometry.lane if geometry else None


def pack_lanes(activities: Iterable[Activity]) -> LanePacking:
    """
    Assign each activity the lowest lane it fits in without overlapping.

    Activities are visited by start_week; `sorted` is stable, so equal starts
    keep their input order. A lane is free when its last activity ends at or
    before the candidate's start, so touching bars may share a lane.
    """

    ordered = sorted(activities, key=lambda a: a.start_week)
    lane_ends: list[int] = []
    lanes: dict[str, int] = {}

    for activity in ordered:
        lane = next((idx for idx, end in enumerate(lane_ends) if end <= activity.start_week), None)
        if lane is None:
            lane = len(lane_ends)
            lane_ends.append(0)
        lane_ends[lane] = activity.end_week
        lanes[activity.id] = lane

    return LanePacking(lanes=lanes, lane_count=len(lane_ends))


def track_height(lane_count: int, metrics: LayoutMetrics = DEFAULT_METRICS) -> float:
    """Rendered height of a track; an empty track still reserves one lane."""
    rows = max(1, lane_count)
    return metrics.row_padding * 2 + rows * metrics.task_height + (rows - 1) * metrics.task_gap


def lane_top(lane: int, metrics: LayoutMetrics = DEFAULT_METRICS) -> float:
    """Top of a lane relative to its track."""
    return metrics.row_padding + lane * (metrics.task_height + metrics.task_gap)


def layout_tracks(plan: Plan, metrics: LayoutMetrics = DEFAULT_METRICS) -> TimelineLayout:
    """Pack every track and stack them top to bottom in component order."""

    scale = plan.view.pixels_per_week
    tracks: dict[str, TrackLayout] = {}
    geometry: dict[str, ActivityGeometry] = {}
    current_y = 0.0

    for component in plan.components:
        members = plan.activities_for(component.id)
        packing = pack_lanes(members)
        for activity in members:
            lane = packing.lanes[activity.id]
            local_top = lane_top(lane, metrics)
            geometry[activity.id] = ActivityGeometry(
                activity_id=activity.id,
                component_id=component.id,
                lane=lane,
                local_top=local_top,
                absolute_top=current_y + local_top,
                center_y=current_y + local_top + metrics.task_height / 2,
                left=activity.start_week * scale,
                width=activity.duration * scale,
            )

        height = track_height(packing.lane_count, metrics)
        tracks[component.id] = TrackLayout(
            component_id=component.id,
            top=current_y,
            height=height,
            lane_count=packing.lane_count,
            activity_count=len(members),
        )
        current_y += height

    orphans = len(plan.activities) - len(geometry)
    if orphans:
        logger.debug("Skipped %d activities without a known component", orphans)

    return TimelineLayout(tracks=tracks, activities=geometry, total_height=current_y)
