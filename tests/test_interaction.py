import pytest

from roadmap_planner.errors import PlanValidationError
from roadmap_planner.interaction import GestureSession, begin_drag, translate_drag, week_delta
from roadmap_planner.plan_models import Activity


def _act(start=3, duration=4):
    return Activity(id="t1", component_id="c1", name="Design", start_week=start, duration=duration)


@pytest.mark.parametrize(
    "pixels, expected",
    [(130, 2), (-130, -2), (0, 0), (29, 0), (30, 1), (-30, 0), (-31, -1), (600, 10)],
)
def test_week_delta_rounds_to_nearest_week(pixels, expected):
    assert week_delta(pixels, 60) == expected


def test_week_delta_requires_positive_scale():
    with pytest.raises(PlanValidationError):
        week_delta(10, 0)


def test_move_shifts_start_and_keeps_duration():
    gesture = begin_drag(_act(), "move", start_x=100)

    patch = translate_drag(gesture, pointer_x=230, pixels_per_week=60)

    assert (patch.activity_id, patch.start_week, patch.duration) == ("t1", 5, 4)


def test_move_cannot_go_before_week_zero():
    gesture = begin_drag(_act(start=1), "move", start_x=500)

    patch = translate_drag(gesture, pointer_x=0, pixels_per_week=60)

    assert patch.start_week == 0


def test_resize_changes_duration_only():
    gesture = begin_drag(_act(), "resize", start_x=0)

    grown = translate_drag(gesture, pointer_x=120, pixels_per_week=60)
    shrunk = translate_drag(gesture, pointer_x=-900, pixels_per_week=60)

    assert (grown.start_week, grown.duration) == (3, 6)
    assert (shrunk.start_week, shrunk.duration) == (3, 1)


def test_translator_bounds_hold_for_any_delta():
    for kind in ("move", "resize"):
        gesture = begin_drag(_act(start=2, duration=2), kind, start_x=0)
        for pointer_x in range(-1000, 1001, 37):
            patch = translate_drag(gesture, pointer_x, pixels_per_week=15)
            assert patch.start_week >= 0
            assert patch.duration >= 1


def test_unknown_gesture_kind_is_rejected():
    with pytest.raises(PlanValidationError):
        begin_drag(_act(), "rotate", start_x=0)


def test_translation_uses_reference_values_not_live_activity():
    gesture = begin_drag(_act(start=3), "move", start_x=0)

    first = translate_drag(gesture, 60, 60)
    second = translate_drag(gesture, 120, 60)

    assert first.start_week == 4
    assert second.start_week == 5


def test_session_commits_last_patch_exactly_once():
    session = GestureSession()
    session.begin(_act(), "move", start_x=10)
    session.update(70, 60)
    session.update(130, 60)

    patch = session.end()

    assert patch is not None
    assert patch.start_week == 5
    assert not session.active
    assert session.end() is None


def test_session_cancel_discards_gesture():
    session = GestureSession()
    session.begin(_act(), "resize", start_x=0)
    session.update(300, 60)

    session.cancel()

    assert not session.active
    assert session.end() is None
    assert session.update(400, 60) is None


def test_session_without_movement_has_nothing_to_commit():
    session = GestureSession()
    session.begin(_act(), "move", start_x=0)

    assert session.end() is None
