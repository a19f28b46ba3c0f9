import pytest

from roadmap_planner.errors import ConstraintUnsatisfiable
from roadmap_planner.plan_models import Activity, Component, Dependency, Plan
from roadmap_planner.scheduling import find_cycle, propagate_dependencies, propagate_plan, violated_edges


def _act(activity_id, start, duration):
    return Activity(id=activity_id, component_id="c1", name=activity_id, start_week=start, duration=duration)


def _starts(result):
    return {a.id: a.start_week for a in result.activities}


def test_blocker_pushes_successor_to_predecessor_end():
    a = _act("A", 0, 8)
    b = _act("B", 5, 4)
    edge = Dependency(id="d1", from_id="A", to_id="B", kind="blocker")

    result = propagate_dependencies([a, b], [edge])

    assert _starts(result) == {"A": 0, "B": 8}
    assert result.changed_ids == ("B",)
    assert result.satisfied


def test_propagation_never_changes_durations():
    activities = [_act("A", 0, 3), _act("B", 0, 2), _act("C", 1, 5)]
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "B", "C")]

    result = propagate_dependencies(activities, edges)

    assert [a.duration for a in result.activities] == [3, 2, 5]
    assert _starts(result) == {"A": 0, "B": 3, "C": 5}


def test_successor_already_clear_is_untouched():
    a = _act("A", 0, 2)
    b = _act("B", 6, 1)

    result = propagate_dependencies([a, b], [Dependency("d1", "A", "B")])

    assert result.activities[1] is b
    assert result.changed_ids == ()


def test_long_chain_listed_backwards_settles():
    activities = [_act(name, 0, 1) for name in "ABCDEFGH"]
    pairs = list(zip("ABCDEFG", "BCDEFGH"))
    edges = [Dependency(f"d{i}", src, dst) for i, (src, dst) in enumerate(reversed(pairs))]

    result = propagate_dependencies(activities, edges)

    assert _starts(result) == {name: idx for idx, name in enumerate("ABCDEFGH")}
    assert violated_edges(result.activities, edges) == []
    assert result.passes <= 2


def test_multiple_predecessors_use_latest_end():
    activities = [_act("A", 0, 8), _act("B", 2, 4), _act("C", 5, 5)]
    edges = [Dependency("d1", "A", "C", "blocker"), Dependency("d2", "B", "C", "normal")]

    result = propagate_dependencies(activities, edges)

    assert _starts(result)["C"] == 8


def test_edge_kind_does_not_change_propagation():
    activities = [_act("A", 0, 3), _act("B", 1, 1)]

    blocker = propagate_dependencies(activities, [Dependency("d1", "A", "B", "blocker")])
    normal = propagate_dependencies(activities, [Dependency("d1", "A", "B", "normal")])

    assert blocker.activities == normal.activities


def test_propagation_is_idempotent():
    activities = [_act("A", 0, 8), _act("B", 2, 4), _act("C", 5, 4), _act("D", 10, 4)]
    edges = [Dependency("d1", "A", "C"), Dependency("d2", "B", "C"), Dependency("d3", "C", "D")]

    first = propagate_dependencies(activities, edges)
    second = propagate_dependencies(first.activities, edges)

    assert second.activities == first.activities
    assert second.changed_ids == ()
    assert second.passes == 1


def test_dependency_cycle_is_held_out_and_reported():
    activities = [_act("A", 0, 2), _act("B", 1, 3)]
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "B", "A")]

    result = propagate_dependencies(activities, edges)

    assert _starts(result) == {"A": 0, "B": 1}
    assert {e.id for e in result.cyclic_edges} == {"d1", "d2"}
    assert result.cycle is not None
    assert result.cycle.path[0] == result.cycle.path[-1]
    assert not result.satisfied


def test_cyclic_input_is_idempotent_and_downstream_still_moves():
    activities = [_act("A", 0, 2), _act("B", 1, 3), _act("C", 0, 1)]
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "B", "A"), Dependency("d3", "B", "C")]

    first = propagate_dependencies(activities, edges)
    second = propagate_dependencies(first.activities, edges)

    assert _starts(first)["C"] == 4
    assert second.activities == first.activities
    assert second.passes <= 5


def test_unsatisfied_propagation_raises_on_request():
    activities = [_act("A", 0, 1), _act("B", 0, 1)]
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "B", "A")]

    result = propagate_dependencies(activities, edges)
    with pytest.raises(ConstraintUnsatisfiable) as excinfo:
        result.raise_if_unsatisfied()
    assert sorted(excinfo.value.edge_ids) == ["d1", "d2"]

    with pytest.raises(ConstraintUnsatisfiable):
        propagate_dependencies(activities, edges, strict=True)


def test_edges_to_unknown_activities_are_ignored():
    activities = [_act("A", 0, 3), _act("B", 0, 1)]
    edges = [Dependency("d1", "A", "missing"), Dependency("d2", "ghost", "B")]

    result = propagate_dependencies(activities, edges)

    assert _starts(result) == {"A": 0, "B": 0}
    assert result.satisfied


def test_propagate_plan_returns_same_snapshot_when_settled():
    plan = Plan(
        components=(Component("c1", "Track"),),
        activities=(_act("A", 0, 2), _act("B", 2, 2)),
        dependencies=(Dependency("d1", "A", "B"),),
    )

    settled, result = propagate_plan(plan)

    assert settled is plan
    assert result.satisfied


def test_propagate_plan_replaces_activities():
    plan = Plan(
        components=(Component("c1", "Track"),),
        activities=(_act("A", 0, 8), _act("B", 5, 4)),
        dependencies=(Dependency("d1", "A", "B", "blocker"),),
    )

    settled, _ = propagate_plan(plan)

    assert settled.activity("B").start_week == 8
    assert plan.activity("B").start_week == 5


def test_find_cycle():
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "B", "C"), Dependency("d3", "C", "A")]

    assert find_cycle(["A", "B", "C"], edges[:2]) is None
    cycle = find_cycle(["A", "B", "C"], edges)
    assert cycle is not None
    assert cycle.path == ("A", "B", "C", "A")


def test_violated_edges_lists_only_broken_edges():
    activities = [_act("A", 0, 4), _act("B", 2, 1), _act("C", 4, 1)]
    edges = [Dependency("d1", "A", "B"), Dependency("d2", "A", "C")]

    assert [e.id for e in violated_edges(activities, edges)] == ["d1"]


def test_very_long_chain_settles_without_recursion_limit():
    activities = [_act(f"a{idx}", 0, 1) for idx in range(1200)]
    edges = [Dependency(f"d{idx}", f"a{idx}", f"a{idx + 1}") for idx in range(1199)]

    result = propagate_dependencies(activities, edges)

    assert result.satisfied
    assert _starts(result)["a1199"] == 1199
    assert find_cycle([a.id for a in activities], edges) is None


def test_long_cycle_is_found_without_recursion_limit():
    ids = [f"a{idx}" for idx in range(1500)]
    edges = [Dependency(f"d{idx}", ids[idx], ids[(idx + 1) % len(ids)]) for idx in range(len(ids))]

    result = propagate_dependencies([_act(i, 0, 1) for i in ids], edges)

    assert len(result.cyclic_edges) == 1500
    assert result.cycle.path[0] == result.cycle.path[-1] == "a0"
    assert len(result.cycle.path) == 1501
