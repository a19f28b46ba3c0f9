from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from .errors import PlanValidationError
from .plan_models import Activity, ActivityPatch

GestureKind = Literal["move", "resize"]


@dataclass(frozen=True)
class DragGesture:
    """Reference values captured when a drag starts; owned by the UI for the gesture's lifetime."""

    activity_id: str
    kind: GestureKind
    start_x: float
    original_start: int
    original_duration: int


def begin_drag(activity: Activity, kind: GestureKind, start_x: float) -> DragGesture:
    if kind not in ("move", "resize"):
        raise PlanValidationError(f"unknown gesture kind '{kind}', expected 'move' or 'resize'")
    return DragGesture(
        activity_id=activity.id,
        kind=kind,
        start_x=start_x,
        original_start=activity.start_week,
        original_duration=activity.duration,
    )


def week_delta(pixel_delta: float, pixels_per_week: float) -> int:
    """Whole weeks covered by a pointer delta; halves round up, as browsers round pointer math."""
    if pixels_per_week <= 0:
        raise PlanValidationError(f"pixels_per_week must be positive, got {pixels_per_week!r}")
    return math.floor(pixel_delta / pixels_per_week + 0.5)


def translate_drag(gesture: DragGesture, pointer_x: float, pixels_per_week: float) -> ActivityPatch:
    """Proposed start/duration for the live pointer position; never below week 0 or 1 week long."""
    delta = week_delta(pointer_x - gesture.start_x, pixels_per_week)
    start = gesture.original_start
    duration = gesture.original_duration
    if gesture.kind == "move":
        start = max(0, gesture.original_start + delta)
    else:
        duration = max(1, gesture.original_duration + delta)
    return ActivityPatch(activity_id=gesture.activity_id, start_week=start, duration=duration)


class GestureSession:
    """
    Transient drag state for one pointer.

    The UI calls `update` on every pointer move and `end` on release; `end`
    hands back the last proposed patch exactly once. `cancel` (focus loss,
    escape) drops the gesture without a patch. Either way the session is
    idle afterwards.
    """

    def __init__(self) -> None:
        self.gesture: DragGesture | None = None
        self.last_patch: ActivityPatch | None = None

    @property
    def active(self) -> bool:
        return self.gesture is not None

    def begin(self, activity: Activity, kind: GestureKind, start_x: float) -> DragGesture:
        self.gesture = begin_drag(activity, kind, start_x)
        self.last_patch = None
        return self.gesture

    def update(self, pointer_x: float, pixels_per_week: float) -> ActivityPatch | None:
        if self.gesture is None:
            return None
        self.last_patch = translate_drag(self.gesture, pointer_x, pixels_per_week)
        return self.last_patch

    def end(self) -> ActivityPatch | None:
        patch = self.last_patch
        self.cancel()
        return patch

    def cancel(self) -> None:
        self.gesture = None
        self.last_patch = None
