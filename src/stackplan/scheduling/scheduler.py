"""
Dependency scheduling over a ResourceGraph.

Produces a deterministic realization order (dependencies first, ties
broken by declaration order) and the waves a bounded-concurrency executor
may run in parallel.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Iterable

import structlog

from stackplan.core.errors import CycleDetectedError
from stackplan.graph.models import NodeHandle
from stackplan.graph.resource_graph import ResourceGraph

logger = structlog.get_logger()


@dataclass(frozen=True)
class OrderingViolation:
    """A node placed before (or without) one of its dependencies."""

    node: NodeHandle
    dependency: NodeHandle
    reason: str

    def __str__(self) -> str:
        return f"{self.node} {self.reason} {self.dependency}"


class DependencyScheduler:
    """Topological ordering with declaration-order tie breaking."""

    def order(self, graph: ResourceGraph) -> list[NodeHandle]:
        """
        Total order over every node consistent with all edges.

        Raises:
            CycleDetectedError: graph contains a cycle
        """
        nodes = graph.nodes()
        remaining = {h: len(graph.dependencies(h)) for h in nodes}
        ready = [(graph.sequence(h), h) for h in nodes if remaining[h] == 0]
        heapq.heapify(ready)

        order: list[NodeHandle] = []
        while ready:
            _, handle = heapq.heappop(ready)
            order.append(handle)
            for dependent in graph.dependents(handle):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, (graph.sequence(dependent), dependent))

        if len(order) != len(nodes):
            _raise_cycle(graph, [h for h in nodes if remaining[h] > 0])
        return order

    def waves(self, graph: ResourceGraph) -> list[list[NodeHandle]]:
        """Groups of nodes whose dependencies all lie in earlier groups."""
        nodes = graph.nodes()
        remaining = {h: len(graph.dependencies(h)) for h in nodes}
        current = [h for h in nodes if remaining[h] == 0]

        waves: list[list[NodeHandle]] = []
        placed = 0
        while current:
            waves.append(current)
            placed += len(current)
            nxt: list[NodeHandle] = []
            for handle in current:
                for dependent in graph.dependents(handle):
                    remaining[dependent] -= 1
                    if remaining[dependent] == 0:
                        nxt.append(dependent)
            current = sorted(nxt, key=graph.sequence)

        if placed != len(nodes):
            _raise_cycle(graph, [h for h in nodes if remaining[h] > 0])
        return waves

    def verify_order(
        self,
        graph: ResourceGraph,
        handles: Iterable[NodeHandle],
        realized: Iterable[NodeHandle] = (),
    ) -> list[OrderingViolation]:
        """
        Check a proposed (possibly partial or retried) sequence.

        Every dependency of a node must either be in ``realized`` or appear
        earlier in ``handles``.
        """
        done = set(realized)
        violations: list[OrderingViolation] = []
        sequence = list(handles)
        position = {h: i for i, h in enumerate(sequence)}
        for index, handle in enumerate(sequence):
            if handle not in graph:
                continue
            for dep in graph.dependencies(handle):
                if dep in done:
                    continue
                if dep not in position:
                    violations.append(OrderingViolation(handle, dep, "depends on unplanned"))
                elif position[dep] > index:
                    violations.append(OrderingViolation(handle, dep, "is ordered before"))
        return violations


def find_cycle(graph: ResourceGraph, candidates: list[NodeHandle]) -> list[NodeHandle]:
    """Return one cycle among ``candidates`` as a closed path."""
    candidate_set = set(candidates)
    for start in candidates:
        path = [start]
        on_path = {start: 0}
        current = start
        while True:
            nxt = next(
                (d for d in graph.dependencies(current) if d in candidate_set),
                None,
            )
            if nxt is None:
                break
            if nxt in on_path:
                return path[on_path[nxt]:] + [nxt]
            on_path[nxt] = len(path)
            path.append(nxt)
            current = nxt
    return list(candidates)


def _raise_cycle(graph: ResourceGraph, stuck: list[NodeHandle]) -> None:
    cycle = find_cycle(graph, stuck)
    logger.error("cycle_detected", nodes=[str(h) for h in cycle])
    raise CycleDetectedError(
        "Dependency cycle: " + " -> ".join(str(h) for h in cycle),
        subjects=[str(h) for h in cycle],
    )
