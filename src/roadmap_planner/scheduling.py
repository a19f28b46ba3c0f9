from __future__ import annotations

import dataclasses
import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator

from .config import MAX_PASSES
from .errors import ConstraintUnsatisfiable
from .plan_models import Activity, Dependency, Plan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: tuple[str, ...]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


@dataclass(frozen=True)
class PropagationResult:
    """
    Outcome of one propagation run.

    `activities` is always usable: when `satisfied` is False it is the
    best-effort schedule, with edges on a cycle left as they were.
    """

    activities: tuple[Activity, ...]
    changed_ids: tuple[str, ...] = ()
    passes: int = 0
    converged: bool = True
    cyclic_edges: tuple[Dependency, ...] = ()
    cycle: Cycle | None = None

    @property
    def satisfied(self) -> bool:
        return self.converged and not self.cyclic_edges

    def raise_if_unsatisfied(self) -> None:
        if self.satisfied:
            return
        if self.cyclic_edges:
            where = f": {self.cycle}" if self.cycle else ""
            message = f"dependency cycle cannot be satisfied{where}"
        else:
            message = f"propagation did not settle within {self.passes} passes"
        raise ConstraintUnsatisfiable(
            message,
            cycle=list(self.cycle.path) if self.cycle else None,
            edge_ids=[edge.id for edge in self.cyclic_edges],
        )


def propagate_dependencies(
    activities: Iterable[Activity],
    dependencies: Iterable[Dependency],
    max_passes: int = MAX_PASSES,
    strict: bool = False,
) -> PropagationResult:
    """
    Push successor start weeks forward until every edge is satisfied.

    - Each pass visits every edge; a successor starting before its
      predecessor's end is moved to that end. Durations never change.
    - Stops early after a pass with no change, or after `max_passes`.
    - Edges are visited in topological order of their predecessor, so an
      acyclic edge set settles in a single changing pass.
    - Edges that lie on a cycle are held out and reported; they can never be
      satisfied, and relaxing them would move the schedule on every rerun.
      Cycle members keep their authored starts unless an edge from outside
      the cycle pushes them.
    - Edges that mention an unknown activity are ignored.
    """

    activity_list = list(activities)
    starts = {a.id: a.start_week for a in activity_list}
    durations = {a.id: a.duration for a in activity_list}
    order = [a.id for a in activity_list]

    edges: list[Dependency] = []
    for edge in dependencies:
        if edge.from_id in starts and edge.to_id in starts:
            edges.append(edge)
        else:
            logger.debug("Ignoring dependency '%s' with unknown endpoint", edge.id)

    components = _strongly_connected(order, _successors(order, edges))
    cyclic = [e for e in edges if e.from_id == e.to_id or components[e.from_id] == components[e.to_id]]
    acyclic = [e for e in edges if e.from_id != e.to_id and components[e.from_id] != components[e.to_id]]
    cycle = _find_cycle(order, _successors(order, cyclic)) if cyclic else None
    if cyclic:
        logger.warning(
            "Holding %d dependencies on a cycle out of propagation (%s)",
            len(cyclic),
            cycle,
        )

    ordered_edges = _order_edges(order, acyclic)
    changed_ids: list[str] = []
    passes = 0
    settled = False

    while passes < max_passes:
        passes += 1
        changed = False
        for edge in ordered_edges:
            minimum = starts[edge.from_id] + durations[edge.from_id]
            if starts[edge.to_id] < minimum:
                starts[edge.to_id] = minimum
                changed = True
                if edge.to_id not in changed_ids:
                    changed_ids.append(edge.to_id)
        if not changed:
            settled = True
            break

    if not settled:
        settled = not any(starts[e.to_id] < starts[e.from_id] + durations[e.from_id] for e in ordered_edges)
        if not settled:
            logger.warning("Propagation still violating edges after %d passes", passes)

    logger.debug("Propagation finished after %d passes, moved %d activities", passes, len(changed_ids))

    result = PropagationResult(
        activities=tuple(
            dataclasses.replace(a, start_week=starts[a.id]) if starts[a.id] != a.start_week else a
            for a in activity_list
        ),
        changed_ids=tuple(changed_ids),
        passes=passes,
        converged=settled,
        cyclic_edges=tuple(cyclic),
        cycle=cycle,
    )
    if strict:
        result.raise_if_unsatisfied()
    return result


def propagate_plan(plan: Plan, max_passes: int = MAX_PASSES, strict: bool = False) -> tuple[Plan, PropagationResult]:
    """Propagate a snapshot; returns the new snapshot (the same object if nothing moved) and the result."""
    result = propagate_dependencies(plan.activities, plan.dependencies, max_passes=max_passes, strict=strict)
    if not result.changed_ids:
        return plan, result
    return dataclasses.replace(plan, activities=result.activities), result


def violated_edges(activities: Iterable[Activity], dependencies: Iterable[Dependency]) -> list[Dependency]:
    """Edges whose successor starts before its predecessor ends."""
    lookup = {a.id: a for a in activities}
    violated: list[Dependency] = []
    for edge in dependencies:
        source = lookup.get(edge.from_id)
        target = lookup.get(edge.to_id)
        if source is None or target is None:
            continue
        if target.start_week < source.end_week:
            violated.append(edge)
    return violated


def find_cycle(activity_ids: Iterable[str], dependencies: Iterable[Dependency]) -> Cycle | None:
    """First cycle reachable in activity order, or None for an acyclic edge set."""
    order = list(activity_ids)
    return _find_cycle(order, _successors(order, list(dependencies)))


def _successors(order: list[str], edges: list[Dependency]) -> dict[str, list[str]]:
    successors: dict[str, list[str]] = {node: [] for node in order}
    for edge in edges:
        successors.setdefault(edge.from_id, []).append(edge.to_id)
    return successors


def _find_cycle(order: list[str], successors: dict[str, list[str]]) -> Cycle | None:
    state: dict[str, str] = {}

    for root in order:
        if root in state:
            continue
        state[root] = "visiting"
        stack = [root]
        positions = {root: 0}
        frames = [iter(successors.get(root, []))]

        while frames:
            for nxt in frames[-1]:
                nxt_state = state.get(nxt)
                if nxt_state == "visiting":
                    return Cycle(tuple(stack[positions[nxt] :] + [nxt]))
                if nxt_state is None:
                    state[nxt] = "visiting"
                    positions[nxt] = len(stack)
                    stack.append(nxt)
                    frames.append(iter(successors.get(nxt, [])))
                    break
            else:
                node = stack.pop()
                positions.pop(node)
                state[node] = "done"
                frames.pop()
    return None


def _strongly_connected(order: list[str], successors: dict[str, list[str]]) -> dict[str, int]:
    """Tarjan's algorithm with an explicit stack; returns a component index per node."""

    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: dict[str, int] = {}
    frames: list[tuple[str, Iterator[str]]] = []
    found = 0

    def enter(node: str) -> None:
        index[node] = lowlink[node] = len(index)
        stack.append(node)
        on_stack.add(node)
        frames.append((node, iter(successors.get(node, []))))

    for root in order:
        if root in index:
            continue
        enter(root)

        while frames:
            node, children = frames[-1]
            for nxt in children:
                if nxt not in index:
                    enter(nxt)
                    break
                if nxt in on_stack:
                    lowlink[node] = min(lowlink[node], index[nxt])
            else:
                frames.pop()
                if frames:
                    parent = frames[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index[node]:
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        components[member] = found
                        if member == node:
                            break
                    found += 1
    return components


def _order_edges(order: list[str], edges: list[Dependency]) -> list[Dependency]:
    # Preserve input order by seeding the queue and adjacency in activity order.
    dependents: dict[str, list[str]] = {node: [] for node in order}
    indegree: dict[str, int] = {node: 0 for node in order}

    for edge in edges:
        dependents[edge.from_id].append(edge.to_id)
        indegree[edge.to_id] += 1

    queue = deque([node for node in order if indegree[node] == 0])
    rank: dict[str, int] = {}

    while queue:
        current = queue.popleft()
        rank[current] = len(rank)
        for child in dependents[current]:
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)

    # Unranked nodes would mean a cycle slipped through; keep them last in input order.
    fallback = len(order)
    return sorted(edges, key=lambda e: rank.get(e.from_id, fallback))
