from __future__ import annotations

from typing import Any


class PlanError(Exception):
    """Base error for the roadmap engine. Every subclass is recoverable by the caller."""

    code = "E_PLAN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class PlanValidationError(PlanError):
    """Raised when snapshot input or a requested mutation is malformed."""

    code = "E_VALIDATION"


class InvalidDate(PlanValidationError):
    """Raised when a date value cannot be parsed; the raw value is kept for reporting."""

    code = "E_INVALID_DATE"

    def __init__(self, value: Any, where: str | None = None) -> None:
        location = f"{where}: " if where else ""
        super().__init__(f"{location}invalid date {value!r}, expected YYYY-MM-DD")
        self.value = value
        self.where = where


class UnknownEntity(PlanValidationError):
    """Raised when a mutation references an id that is not in the snapshot."""

    code = "E_UNKNOWN_ENTITY"


class ComponentLimitReached(PlanValidationError):
    code = "E_COMPONENT_LIMIT"


class SelfDependency(PlanValidationError):
    """Raised when an edge would connect an activity to itself."""

    code = "E_SELF_DEPENDENCY"

    def __init__(self, activity_id: str, where: str | None = None) -> None:
        location = f"{where}: " if where else ""
        super().__init__(f"{location}activity '{activity_id}' cannot depend on itself")
        self.activity_id = activity_id


class DuplicateDependency(PlanValidationError):
    """Raised when an edge for the same (from, to) pair already exists."""

    code = "E_DUPLICATE_DEPENDENCY"

    def __init__(self, from_id: str, to_id: str, existing_id: str, where: str | None = None) -> None:
        location = f"{where}: " if where else ""
        super().__init__(f"{location}dependency '{from_id}' -> '{to_id}' already exists as '{existing_id}'")
        self.from_id = from_id
        self.to_id = to_id
        self.existing_id = existing_id


class ConstraintUnsatisfiable(PlanError):
    """
    Raised on request when propagation cannot satisfy every edge.

    The best-effort schedule is still available on the propagation result;
    this only turns the condition into something a caller can catch.
    """

    code = "E_UNSATISFIABLE"

    def __init__(self, message: str, cycle: list[str] | None = None, edge_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.cycle = list(cycle or [])
        self.edge_ids = list(edge_ids or [])
