import itertools

from roadmap_planner.config import LayoutMetrics
from roadmap_planner.lanes import layout_tracks, pack_lanes, track_height
from roadmap_planner.plan_models import Activity, Component, Plan, ViewWindow


def _act(activity_id, start, duration, component_id="c1"):
    return Activity(id=activity_id, component_id=component_id, name=activity_id, start_week=start, duration=duration)


def test_overlap_opens_new_lane_and_free_lane_is_reused():
    packing = pack_lanes([_act("X", 0, 4), _act("Y", 2, 3), _act("Z", 5, 2)])

    assert packing.lanes == {"X": 0, "Y": 1, "Z": 0}
    assert packing.lane_count == 2


def test_touching_endpoints_share_a_lane():
    packing = pack_lanes([_act("A", 0, 4), _act("B", 4, 2)])

    assert packing.lanes == {"A": 0, "B": 0}


def test_equal_starts_keep_input_order():
    first = pack_lanes([_act("A", 0, 2), _act("B", 0, 2)])
    swapped = pack_lanes([_act("B", 0, 2), _act("A", 0, 2)])

    assert first.lanes == {"A": 0, "B": 1}
    assert swapped.lanes == {"B": 0, "A": 1}


def test_input_order_does_not_matter_for_distinct_starts():
    activities = [_act("late", 6, 1), _act("early", 0, 3), _act("mid", 2, 2)]

    packing = pack_lanes(activities)

    assert packing.lanes == {"early": 0, "mid": 1, "late": 0}


def test_same_lane_intervals_never_overlap():
    activities = [
        _act("a", 0, 8),
        _act("b", 2, 4),
        _act("c", 3, 1),
        _act("d", 4, 6),
        _act("e", 6, 2),
        _act("f", 8, 3),
        _act("g", 8, 1),
        _act("h", 9, 5),
    ]

    packing = pack_lanes(activities)

    for left, right in itertools.combinations(activities, 2):
        if packing.lanes[left.id] != packing.lanes[right.id]:
            continue
        assert left.end_week <= right.start_week or right.end_week <= left.start_week


def test_packing_is_deterministic():
    activities = [_act("a", 3, 2), _act("b", 0, 5), _act("c", 3, 1), _act("d", 1, 1)]

    assert pack_lanes(activities) == pack_lanes(list(activities))


def test_empty_track_packs_to_zero_lanes():
    packing = pack_lanes([])

    assert packing.lanes == {}
    assert packing.lane_count == 0


def test_track_height_reserves_one_lane_when_empty():
    assert track_height(0) == 88
    assert track_height(1) == 88
    assert track_height(2) == 138
    assert track_height(3, LayoutMetrics(task_height=10, task_gap=2, row_padding=5)) == 44


def test_layout_stacks_tracks_in_component_order():
    plan = Plan(
        components=(Component("c1", "Backend"), Component("c2", "Mobile"), Component("c3", "Empty")),
        activities=(
            _act("t1", 0, 8, "c1"),
            _act("t2", 2, 4, "c1"),
            _act("t3", 8, 4, "c2"),
        ),
        view=ViewWindow(pixels_per_week=60),
    )

    layout = layout_tracks(plan)

    assert layout.tracks["c1"].top == 0
    assert layout.tracks["c1"].height == 138
    assert layout.tracks["c2"].top == 138
    assert layout.tracks["c3"].top == 226
    assert layout.tracks["c3"].activity_count == 0
    assert layout.total_height == 314

    t2 = layout.activities["t2"]
    assert t2.lane == 1
    assert t2.local_top == 74
    assert t2.absolute_top == 74
    assert t2.center_y == 94
    assert t2.left == 120
    assert t2.width == 240

    t3 = layout.activities["t3"]
    assert t3.absolute_top == 138 + 24
    assert layout.lane_of("t3") == 0
    assert layout.lane_of("missing") is None


def test_layout_skips_activities_of_unknown_component():
    plan = Plan(components=(Component("c1", "Backend"),), activities=(_act("t1", 0, 1, "gone"),))

    layout = layout_tracks(plan)

    assert layout.activities == {}
    assert layout.tracks["c1"].lane_count == 0
