from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .calendar_axis import parse_date, week_offset_of, window_end
from .config import FREQUENCY_DAYS, MAX_OCCURRENCES, mode_settings
from .errors import InvalidDate
from .plan_models import Milestone, MilestoneOccurrence, PointMilestone, RecurringMilestone, ViewWindow

logger = logging.getLogger(__name__)


@dataclass
class MilestoneExpansion:
    """Occurrences inside the window plus the dates that had to be skipped."""

    occurrences: list[MilestoneOccurrence] = field(default_factory=list)
    issues: list[InvalidDate] = field(default_factory=list)


def iter_occurrence_dates(start: dt.date, end: dt.date, step_days: int, limit: int = MAX_OCCURRENCES) -> Iterator[dt.date]:
    """Dates from start to end inclusive, `step_days` apart, never more than `limit`."""
    current = start
    emitted = 0
    while current <= end and emitted < limit:
        yield current
        emitted += 1
        try:
            current = current + dt.timedelta(days=step_days)
        except OverflowError:
            return
    if emitted >= limit and current <= end:
        logger.warning("Recurrence from %s to %s truncated at %d occurrences", start, end, limit)


def expand_milestone(
    milestone: Milestone,
    view: ViewWindow,
    issues: list[InvalidDate] | None = None,
) -> list[MilestoneOccurrence]:
    """
    Place one milestone on the axis.

    Point milestones yield at most one occurrence; recurring milestones yield
    one per step between start_date and end_date. Only occurrences whose week
    offset lies in [0, view_weeks] are kept; the walk starts at the first step
    inside the window, so `MAX_OCCURRENCES` only bounds the visible count.
    Unparseable dates are appended to `issues` and skipped.
    """

    if isinstance(milestone, RecurringMilestone):
        return _expand_recurring(milestone, view, issues)
    return _expand_point(milestone, view, issues)


def expand_milestones(
    milestones: Iterable[Milestone],
    view: ViewWindow,
    hidden_types: Iterable[str] = (),
) -> MilestoneExpansion:
    """Expand every milestone in order, leaving out the kinds in `hidden_types`."""
    hidden = set(hidden_types)
    expansion = MilestoneExpansion()
    for milestone in milestones:
        if milestone.kind in hidden:
            continue
        expansion.occurrences.extend(expand_milestone(milestone, view, expansion.issues))
    return expansion


def hidden_types_for_mode(mode: str) -> tuple[str, ...]:
    """Milestone kinds a caller suppresses at the given axis granularity."""
    return mode_settings(mode).hidden_milestone_types


def _expand_point(milestone: PointMilestone, view: ViewWindow, issues: list[InvalidDate] | None) -> list[MilestoneOccurrence]:
    try:
        when = parse_date(milestone.date, where=f"milestone '{milestone.id}'.date")
    except InvalidDate as exc:
        _report(exc, issues)
        return []
    offset = week_offset_of(when, view.program_start)
    if not _in_window(offset, view):
        return []
    return [MilestoneOccurrence(milestone=milestone, occurrence_date=when, week_offset=offset, is_recurring=False)]


def _expand_recurring(
    milestone: RecurringMilestone, view: ViewWindow, issues: list[InvalidDate] | None
) -> list[MilestoneOccurrence]:
    try:
        start = parse_date(milestone.start_date, where=f"milestone '{milestone.id}'.start_date")
        end = parse_date(milestone.end_date, where=f"milestone '{milestone.id}'.end_date")
    except InvalidDate as exc:
        _report(exc, issues)
        return []

    step = FREQUENCY_DAYS[milestone.frequency]
    first, last = _clip_to_window(start, end, step, view)
    occurrences: list[MilestoneOccurrence] = []
    for when in iter_occurrence_dates(first, last, step):
        offset = week_offset_of(when, view.program_start)
        if _in_window(offset, view):
            occurrences.append(
                MilestoneOccurrence(milestone=milestone, occurrence_date=when, week_offset=offset, is_recurring=True)
            )
    logger.debug("Milestone '%s' expanded to %d visible occurrences", milestone.id, len(occurrences))
    return occurrences


def _clip_to_window(start: dt.date, end: dt.date, step_days: int, view: ViewWindow) -> tuple[dt.date, dt.date]:
    # First step on or after program_start, keeping the cadence anchored at start.
    last = min(end, window_end(view.program_start, view.view_weeks))
    if start >= view.program_start:
        return start, last
    steps = math.ceil((view.program_start - start).days / step_days)
    return start + dt.timedelta(days=steps * step_days), last


def _in_window(offset: float, view: ViewWindow) -> bool:
    return 0 <= offset <= view.view_weeks


def _report(exc: InvalidDate, issues: list[InvalidDate] | None) -> None:
    logger.warning("Skipping milestone date: %s", exc.message)
    if issues is not None:
        issues.append(exc)
