from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Literal


ViewMode = Literal["weeks", "quarters"]
"""Axis granularity chosen by the caller; drives the pixel scale and the minimum window."""

# Engine tuning knobs.
MAX_PASSES = 5  # full relaxation passes before propagation gives up
MAX_COMPONENTS = 10
MAX_OCCURRENCES = 1000  # hard cap per recurring milestone

DEFAULT_PROGRAM_START = dt.date(2025, 1, 1)
DEFAULT_VIEW_WEEKS = 24
DEFAULT_MODE: ViewMode = "weeks"
DEFAULT_COLOR_TAG = "slate"
DEFAULT_ACTIVITY_DURATION = 4

RECURRING_MILESTONE_TYPE = "Status Report"
MILESTONE_TYPES = ("Go-Live", "Go/No Go", "Roll out", RECURRING_MILESTONE_TYPE)
FREQUENCY_DAYS = {"weekly": 7, "biweekly": 14}


@dataclass(frozen=True)
class ModeSettings:
    """Pixel scale and minimum visible window for one view mode."""

    pixels_per_week: float
    min_view_weeks: int
    hidden_milestone_types: tuple[str, ...] = ()


VIEW_MODES: dict[str, ModeSettings] = {
    "weeks": ModeSettings(pixels_per_week=60.0, min_view_weeks=1),
    "quarters": ModeSettings(
        pixels_per_week=15.0,
        min_view_weeks=52,
        hidden_milestone_types=(RECURRING_MILESTONE_TYPE,),
    ),
}


@dataclass(frozen=True)
class LayoutMetrics:
    """Pixel sizes used when stacking tracks and lanes."""

    task_height: float = 40.0
    task_gap: float = 10.0
    row_padding: float = 24.0


DEFAULT_METRICS = LayoutMetrics()


def mode_settings(mode: str) -> ModeSettings:
    try:
        return VIEW_MODES[mode]
    except KeyError:
        raise ValueError(f"unknown view mode '{mode}', expected one of {sorted(VIEW_MODES)}") from None
