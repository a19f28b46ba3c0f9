from __future__ import annotations

from typing import Iterable

from .plan_models import Activity, RiskFinding


def evaluate_risks(activities: Iterable[Activity], view_weeks: int) -> list[RiskFinding]:
    """One high-level finding per activity that ends past the visible window."""
    return [
        RiskFinding(level="High", message=f'"{activity.name}" overruns program timeline.', activity_id=activity.id)
        for activity in activities
        if activity.end_week > view_weeks
    ]


def status_summary(findings: list[RiskFinding]) -> str:
    if not findings:
        return "On Track"
    return f"{len(findings)} Risks"
