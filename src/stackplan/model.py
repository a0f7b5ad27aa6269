"""
Declaration API for deployment models.

DeploymentModel is the entry point composing processes use: declare
clusters, capacity offerings, workloads and service bindings, request
explicit ordering, then ``validate()`` and ``plan()``.

Usage:
    model = DeploymentModel()
    model.add_cluster("main")
    model.add_capacity_offering("main", ["MANAGED_ELASTIC"], identifier="mi")
    model.add_workload(["MANAGED_ELASTIC"], identifier="web", cpu=1024, memory=2048)
    model.add_service_binding("main", "web", capacity=[("mi", 1)], identifier="web")

    report = model.validate()
    if report.ok:
        for step in model.plan():
            executor.realize(step)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union

import structlog

from stackplan.capabilities import Capability, CapabilitySet
from stackplan.core.errors import (
    CycleDetectedError,
    DuplicateIdentifierError,
    GraphFrozenError,
    PlanNotReadyError,
    ValidationIssue,
)
from stackplan.graph.models import (
    CapacityOffering,
    CapacityWeight,
    Cluster,
    EdgeKind,
    EntityKind,
    ExecutionStep,
    InstanceRequirements,
    NodeHandle,
    ResourceRequirements,
    ServiceBinding,
    WorkloadSpec,
)
from stackplan.graph.resource_graph import ResourceGraph
from stackplan.ids import IdentifierSource, SequentialIdSource
from stackplan.plan.emitter import PlanEmitter, RealizationPlan
from stackplan.scheduling.scheduler import DependencyScheduler
from stackplan.validation.compatibility import CompatibilityValidator

logger = structlog.get_logger()

CapabilityInput = Union[CapabilitySet, Iterable[Union[str, Capability]], str]
CapacityInput = Union[CapacityWeight, tuple, str]
NodeRef = Union[NodeHandle, str]


@dataclass
class ValidationReport:
    """Every compatibility and graph issue found in one validation pass."""

    issues: list[ValidationIssue] = field(default_factory=list)
    revision: int = 0
    node_count: int = 0

    @property
    def ok(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "node_count": self.node_count,
            "issues": [issue.to_dict() for issue in self.issues],
        }

    def __str__(self) -> str:
        if self.ok:
            return f"✅ Valid deployment model ({self.node_count} entities)"
        lines = [f"❌ {len(self.issues)} problem(s) found"]
        for issue in self.issues:
            lines.append(f"  • {issue}")
        return "\n".join(lines)


class DeploymentModel:
    """Declaration, validation and planning facade over a ResourceGraph."""

    def __init__(
        self,
        id_source: IdentifierSource | None = None,
        default_offering_weight: int = 1,
    ) -> None:
        self.graph = ResourceGraph()
        self.validator = CompatibilityValidator(self.graph)
        self.scheduler = DependencyScheduler()
        self.emitter = PlanEmitter()
        self._ids = id_source or SequentialIdSource()
        self._default_weight = default_offering_weight
        self._last_report: ValidationReport | None = None

    # === Declarations ===

    def add_cluster(
        self,
        identifier: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> NodeHandle:
        cluster = Cluster(
            identifier=identifier or self._new_id(EntityKind.CLUSTER),
            metadata=dict(metadata or {}),
        )
        handle = self.graph.add_node(cluster)
        logger.info("cluster_declared", cluster=cluster.identifier)
        return handle

    def add_capacity_offering(
        self,
        cluster: str,
        capabilities: CapabilityInput,
        identifier: str | None = None,
        weight: int | None = None,
        default_weight: int | None = None,
        instance_requirements: InstanceRequirements | None = None,
        fail_fast: bool = True,
    ) -> NodeHandle:
        """
        Attach a capacity offering to a cluster.

        When the offering joins the cluster default strategy, bindings on that
        cluster resolving through the default strategy are re-validated
        against it first. With ``fail_fast=False`` compatibility problems are
        left for ``validate()`` to report.
        """
        offering = CapacityOffering(
            identifier=identifier or self._new_id(EntityKind.CAPACITY_OFFERING),
            cluster=cluster,
            capabilities=_capabilities(capabilities),
            weight=self._default_weight if weight is None else weight,
            default_weight=default_weight,
            instance_requirements=instance_requirements,
        )
        with self.graph.lock:
            self._precheck(offering.handle)
            if fail_fast:
                self.validator.check_offering_attachment(offering)
            handle = self.graph.add_node(offering)
            if offering.default_weight is not None:
                for binding in self.validator.default_strategy_bindings(cluster):
                    self.graph.add_edge(binding.handle, handle, EdgeKind.ORDERING)

        logger.info(
            "offering_attached",
            offering=offering.identifier,
            cluster=cluster,
            capabilities=offering.capabilities.names(),
        )
        return handle

    def add_workload(
        self,
        capabilities: CapabilityInput,
        identifier: str | None = None,
        cpu: int | None = None,
        memory: int | None = None,
        steps: Sequence[ExecutionStep] = (),
    ) -> NodeHandle:
        workload = WorkloadSpec(
            identifier=identifier or self._new_id(EntityKind.WORKLOAD),
            capabilities=_capabilities(capabilities),
            resources=ResourceRequirements(cpu=cpu, memory_mib=memory),
            steps=tuple(steps),
        )
        handle = self.graph.add_node(workload)
        logger.info("workload_declared", workload=workload.identifier, steps=len(workload.steps))
        return handle

    def add_service_binding(
        self,
        cluster: str,
        workload: str,
        capacity: Sequence[CapacityInput] = (),
        identifier: str | None = None,
        desired_count: int = 1,
        health_check_path: str | None = None,
        fail_fast: bool = True,
    ) -> NodeHandle:
        """
        Bind a workload to a cluster; validated before it is recorded.

        With ``fail_fast=False`` only reference problems raise; compatibility
        problems are recorded for ``validate()`` to report.

        Raises:
            DeclarationError: the first compatibility or reference problem
        """
        binding = ServiceBinding(
            identifier=identifier or self._new_id(EntityKind.SERVICE_BINDING, workload),
            cluster=cluster,
            workload=workload,
            capacity=tuple(_capacity_weight(item) for item in capacity),
            desired_count=desired_count,
            health_check_path=health_check_path,
        )
        with self.graph.lock:
            self._precheck(binding.handle)
            if fail_fast:
                self.validator.check_binding(binding)
            handle = self.graph.add_node(binding)
            if binding.uses_default_strategy:
                for item in self.validator.resolve_capacity(binding):
                    if item.offering is not None:
                        self.graph.add_edge(handle, item.offering.handle, EdgeKind.ORDERING)

        logger.info(
            "binding_declared",
            binding=binding.identifier,
            cluster=cluster,
            workload=workload,
            offerings=[p.offering for p in binding.capacity] or "default",
        )
        return handle

    def add_ordering(self, before: NodeRef, after: NodeRef) -> None:
        """Require ``before`` to be realized before ``after``."""
        self.graph.add_edge(_handle(after), _handle(before), EdgeKind.ORDERING)
        logger.info("ordering_declared", before=str(before), after=str(after))

    def remove(self, node: NodeRef) -> None:
        handle = _handle(node)
        self.graph.remove_node(handle)
        logger.info("node_removed", node=str(handle))

    # === Validation and planning ===

    def validate(self) -> ValidationReport:
        """Collect every current issue without stopping at the first."""
        with self.graph.lock:
            issues = self.validator.validate_all()
            try:
                self.scheduler.order(self.graph)
            except CycleDetectedError as e:
                issues.append(e.to_issue())
            report = ValidationReport(
                issues=issues,
                revision=self.graph.revision,
                node_count=len(self.graph),
            )
            self._last_report = report

        logger.info("model_validated", ok=report.ok, issues=len(report.issues))
        return report

    def plan(self) -> RealizationPlan:
        """
        Freeze the graph and emit the realization plan.

        Raises:
            PlanNotReadyError: not validated since the last change, or invalid
        """
        with self.graph.lock:
            report = self._last_report
            if report is None or report.revision != self.graph.revision:
                raise PlanNotReadyError("Model must be validated before planning")
            if not report.ok:
                raise PlanNotReadyError(
                    f"Model has {len(report.issues)} validation issue(s)",
                    issues=report.issues,
                )
            self.graph.freeze()

        order = self.scheduler.order(self.graph)
        return self.emitter.emit(self.graph, order)

    def _new_id(self, kind: EntityKind, hint: str | None = None) -> str:
        # Generated ids skip over ones the caller declared explicitly
        while True:
            identifier = self._ids.new_id(kind, hint)
            if NodeHandle(kind, identifier) not in self.graph:
                return identifier

    def _precheck(self, handle: NodeHandle) -> None:
        if self.graph.frozen:
            raise GraphFrozenError("Graph is frozen; no further declarations are accepted")
        if handle in self.graph:
            raise DuplicateIdentifierError(
                f"{handle.kind.value} '{handle.identifier}' is already declared",
                subjects=[str(handle)],
            )


def _capabilities(value: CapabilityInput) -> CapabilitySet:
    if isinstance(value, CapabilitySet):
        return value
    return CapabilitySet.parse(value)


def _capacity_weight(item: CapacityInput) -> CapacityWeight:
    """Accept a CapacityWeight, an ``(offering, weight[, base])`` tuple or a bare id."""
    if isinstance(item, CapacityWeight):
        return item
    if isinstance(item, str):
        return CapacityWeight(item)
    return CapacityWeight(*item)


def _handle(node: NodeRef) -> NodeHandle:
    return node if isinstance(node, NodeHandle) else NodeHandle.parse(node)
