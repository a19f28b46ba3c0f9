from pathlib import Path

import pytest

from roadmap_planner import mutations as m
from roadmap_planner.engine import apply, commit, derive_view
from roadmap_planner.errors import ConstraintUnsatisfiable
from roadmap_planner.interaction import begin_drag, translate_drag
from roadmap_planner.parse_plan import load_plan

SAMPLE = Path(__file__).resolve().parents[1] / "sample" / "roadmap.yaml"


@pytest.fixture
def sample_plan():
    return load_plan(str(SAMPLE)).plan


def _starts(plan):
    return {a.id: a.start_week for a in plan.activities}


def test_commit_settles_sample_plan(sample_plan):
    result = commit(sample_plan)

    assert _starts(result.plan) == {"t1": 0, "t2": 2, "t3": 8, "t4": 12, "t5": 8, "t6": 2}
    assert set(result.propagation.changed_ids) == {"t3", "t4", "t5"}
    assert result.propagation.satisfied


def test_derive_view_on_settled_plan(sample_plan):
    plan = commit(sample_plan).plan

    view = derive_view(plan)

    assert view.lane_assignments == {"t1": 0, "t2": 1, "t3": 0, "t4": 0, "t5": 0, "t6": 0}
    assert view.track_heights == {"c1": 138, "c2": 88, "c3": 88, "c4": 88}
    assert view.layout.total_height == 402
    assert view.risks == []
    assert len(view.occurrences) == 1 + 8
    assert [b.label for b in view.buckets["quarters"]] == ["Q1 2025", "Q2 2025"]
    assert len(view.buckets["weeks"]) == 24


def test_derive_view_memoizes_latest_snapshot(sample_plan):
    first = derive_view(sample_plan)

    assert derive_view(sample_plan) is first
    moved = m.update_activity(sample_plan, "t6", start_week=3)
    assert derive_view(moved) is not first


def test_quarter_mode_hides_status_reports(sample_plan):
    plan = m.apply_view_mode(sample_plan, "quarters")

    view = derive_view(plan, "quarters")

    assert [o.milestone.id for o in view.occurrences] == ["m1"]
    assert [b.label for b in view.buckets["quarters"]] == ["Q1 2025", "Q2 2025", "Q3 2025", "Q4 2025"]


def test_apply_runs_mutation_then_propagates(sample_plan):
    result = apply(sample_plan, m.add_dependency, "t4", "t6", blocker=True, dependency_id="d5")

    assert result.plan.activity("t6").start_week == 16
    assert [d.id for d in result.plan.dependencies][-1] == "d5"


def test_drag_commit_repropagates_successors(sample_plan):
    plan = commit(sample_plan).plan
    gesture = begin_drag(plan.activity("t1"), "move", start_x=0)

    patch = translate_drag(gesture, pointer_x=130, pixels_per_week=plan.view.pixels_per_week)
    result = commit(m.apply_patch(plan, patch))

    assert _starts(result.plan)["t1"] == 2
    assert _starts(result.plan)["t3"] == 10
    assert _starts(result.plan)["t4"] == 14
    assert _starts(result.plan)["t5"] == 10


def test_overrun_after_mutation_is_a_risk(sample_plan):
    result = apply(sample_plan, m.update_activity, "t1", duration=20)
    view = derive_view(result.plan)

    names = [r.activity_id for r in view.risks]
    assert names == ["t4", "t5"]


def test_cycle_keeps_best_effort_plan(sample_plan):
    result = apply(sample_plan, m.add_dependency, "t4", "t1", dependency_id="d9")

    assert not result.propagation.satisfied
    assert {e.id for e in result.propagation.cyclic_edges} == {"d1", "d4", "d9"}
    assert _starts(result.plan)["t1"] == 0
    with pytest.raises(ConstraintUnsatisfiable):
        commit(result.plan, strict=True)
