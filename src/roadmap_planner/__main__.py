from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from .calendar_axis import parse_date
from .config import VIEW_MODES
from .engine import DerivedView, commit, derive_view
from .errors import InvalidDate, PlanError, PlanValidationError
from .mutations import apply_view_mode, set_view
from .parse_plan import PlanDocument, load_plan, plan_to_dict
from .plan_models import Plan
from .risk import status_summary
from .scheduling import PropagationResult


def _parse_date(value: str):
    try:
        return parse_date(value)
    except InvalidDate as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roadmap-planner",
        description="Lay out a roadmap plan: lanes, dependency propagation, milestones and risks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("plan", help="Path to plan YAML")
    parser.add_argument("--program-start", type=_parse_date, help="Override program start date (YYYY-MM-DD)")
    parser.add_argument("--view-weeks", type=int, help="Override number of visible weeks")
    parser.add_argument("--mode", choices=sorted(VIEW_MODES), help="Axis granularity; defaults to the plan's mode")
    parser.add_argument("--json", action="store_true", help="Print the settled plan and derived view as JSON")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log engine decisions (-vv for debug)")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    plan_path = Path(args.plan)

    try:
        document: PlanDocument = load_plan(str(plan_path))
    except (yaml.YAMLError, PlanValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: plan file not found: {plan_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading plan: {exc}", file=sys.stderr)
        return 1

    mode = args.mode or document.mode
    try:
        plan = document.plan
        if args.program_start is not None or args.view_weeks is not None:
            plan = set_view(plan, program_start=args.program_start, view_weeks=args.view_weeks)
        if args.mode is not None and args.mode != document.mode:
            plan = apply_view_mode(plan, args.mode)
        result = commit(plan)
        derived = derive_view(result.plan, mode)
    except PlanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        print(f"Unexpected error while scheduling: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(_as_json(result.plan, mode, derived, result.propagation), indent=2))
    else:
        print(_as_text(result.plan, mode, derived, result.propagation))
    return 0


def _as_text(plan: Plan, mode: str, derived: DerivedView, propagation: PropagationResult) -> str:
    lines = [f"Program start {plan.view.program_start.isoformat()}, {plan.view.view_weeks} weeks ({mode})", ""]

    lines.append("Tracks:")
    for component in plan.components:
        track = derived.layout.tracks[component.id]
        lines.append(f"  {component.name} ({max(1, track.lane_count)} lanes, height {track.height:g})")
        for activity in sorted(plan.activities_for(component.id), key=lambda a: (derived.layout.lane_of(a.id), a.start_week)):
            lines.append(
                f"    [lane {derived.layout.lane_of(activity.id)}] {activity.name}: "
                f"W{activity.start_week}-W{activity.end_week} ({activity.duration}w)"
            )

    lines.append("")
    if propagation.changed_ids:
        lines.append(f"Dependencies moved: {', '.join(propagation.changed_ids)}")
    if propagation.cycle:
        lines.append(f"Dependency cycle left unsatisfied: {propagation.cycle}")

    lines.append("Milestones:")
    for occurrence in derived.occurrences:
        lines.append(
            f"  {occurrence.occurrence_date.isoformat()}  {occurrence.kind}: {occurrence.name} "
            f"(week {occurrence.week_offset:.2f})"
        )
    for issue in derived.milestones.issues:
        lines.append(f"  skipped: {issue.message}")

    lines.append("")
    lines.append(f"Status: {status_summary(derived.risks)}")
    for finding in derived.risks:
        lines.append(f"  {finding.level}: {finding.message}")
    return "\n".join(lines)


def _as_json(plan: Plan, mode: str, derived: DerivedView, propagation: PropagationResult) -> dict[str, Any]:
    return {
        "plan": plan_to_dict(plan, mode),
        "lanes": derived.lane_assignments,
        "track_heights": derived.track_heights,
        "total_height": derived.layout.total_height,
        "risks": [{"level": r.level, "message": r.message, "activity": r.activity_id} for r in derived.risks],
        "milestones": [
            {
                "id": o.milestone.id,
                "name": o.name,
                "type": o.kind,
                "date": o.occurrence_date.isoformat(),
                "week_offset": round(o.week_offset, 4),
                "recurring": o.is_recurring,
            }
            for o in derived.occurrences
        ],
        "buckets": {
            name: [{"label": b.label, "start": b.start_week_offset, "width": b.width_weeks} for b in buckets]
            for name, buckets in derived.buckets.items()
        },
        "propagation": {
            "moved": list(propagation.changed_ids),
            "passes": propagation.passes,
            "satisfied": propagation.satisfied,
            "cycle": list(propagation.cycle.path) if propagation.cycle else None,
        },
    }


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
