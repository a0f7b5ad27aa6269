"""
Realization plan emission.

A RealizationPlan is a lazy, finite and restartable sequence: each
iteration regenerates its steps from the frozen graph and the computed
order, and has no side effects beyond producing them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator

import structlog

from stackplan.core.errors import PlanNotReadyError
from stackplan.graph.models import Entity, NodeHandle
from stackplan.graph.resource_graph import ResourceGraph
from stackplan.scheduling.scheduler import DependencyScheduler

logger = structlog.get_logger()


@dataclass(frozen=True)
class RealizationStep:
    """One ordered unit of external provisioning work."""

    index: int
    handle: NodeHandle
    entity: Entity
    depends_on: tuple[str, ...]  # Identifiers of already-realized dependencies

    @property
    def identifier(self) -> str:
        return self.handle.identifier

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "node": str(self.handle),
            "kind": self.handle.kind.value,
            "depends_on": list(self.depends_on),
            "entity": self.entity.to_dict(),
        }


class RealizationPlan:
    """Ordered, validated sequence of realization steps."""

    def __init__(
        self,
        graph: ResourceGraph,
        order: list[NodeHandle],
        realized: Iterable[NodeHandle] = (),
    ) -> None:
        self._graph = graph
        self._order = tuple(order)
        self._realized = frozenset(realized)

    @property
    def order(self) -> tuple[NodeHandle, ...]:
        return self._order

    @property
    def realized(self) -> frozenset[NodeHandle]:
        """Nodes realized before this plan starts."""
        return self._realized

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[RealizationStep]:
        return self._steps()

    def _steps(self) -> Iterator[RealizationStep]:
        done = set(self._realized)
        for index, handle in enumerate(self._order):
            dependencies = self._graph.dependencies(handle)
            ordered = sorted(dependencies, key=self._graph.sequence)
            yield RealizationStep(
                index=index,
                handle=handle,
                entity=self._graph.get(handle),  # type: ignore[arg-type]
                depends_on=tuple(str(dep) for dep in ordered if dep in done),
            )
            done.add(handle)

    def remaining(self, realized: Iterable[NodeHandle]) -> RealizationPlan:
        """
        Plan for the steps not yet realized, after a partial run.

        Raises:
            PlanNotReadyError: remaining order is inconsistent with the graph
        """
        done = self._realized | frozenset(realized)
        newly = [h for h in self._order if h in done and h not in self._realized]
        rest = [h for h in self._order if h not in done]
        # Steps realized in this run must themselves have been realizable
        violations = DependencyScheduler().verify_order(
            self._graph, newly + rest, self._realized
        )
        if violations:
            raise PlanNotReadyError(
                "Remaining plan is not ordering-consistent: "
                + "; ".join(str(v) for v in violations),
                details={"violations": [str(v) for v in violations]},
            )
        logger.debug("plan_remaining", realized=len(done), remaining=len(rest))
        return RealizationPlan(self._graph, rest, done)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "steps": [step.to_dict() for step in self],
            "total_steps": len(self),
            "already_realized": sorted(str(h) for h in self._realized),
        }


class PlanEmitter:
    """Turns a scheduled node order into a RealizationPlan."""

    def emit(self, graph: ResourceGraph, order: list[NodeHandle]) -> RealizationPlan:
        plan = RealizationPlan(graph, order)
        logger.info("plan_emitted", steps=len(plan))
        return plan
