"""
Compatibility validation for service bindings.

A binding is legal when every capacity offering it draws on shares at
least one capability with the bound workload, and the workload's resource
declarations use a granularity the resulting launch modes can honour.
Capability-set intersection is the only legality criterion: the kind of
binding or the name of a capacity class is never consulted.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from stackplan.capabilities import TASK_LEVEL_MODES, Capability, CapabilitySet
from stackplan.core.errors import DeclarationError, ErrorKind, ValidationIssue
from stackplan.graph.models import (
    CapacityOffering,
    CapacityWeight,
    Cluster,
    EntityKind,
    NodeHandle,
    ServiceBinding,
    WorkloadSpec,
)
from stackplan.graph.resource_graph import ResourceGraph

logger = structlog.get_logger()

# Serverless task sizes: cpu units -> allowed memory (MiB)
SERVERLESS_TASK_SIZES: dict[int, frozenset[int]] = {
    256: frozenset({512, 1024, 2048}),
    512: frozenset(range(1024, 4096 + 1, 1024)),
    1024: frozenset(range(2048, 8192 + 1, 1024)),
    2048: frozenset(range(4096, 16384 + 1, 1024)),
    4096: frozenset(range(8192, 30720 + 1, 1024)),
    8192: frozenset(range(16384, 61440 + 1, 4096)),
    16384: frozenset(range(32768, 122880 + 1, 8192)),
}


@dataclass(frozen=True)
class ResolvedCapacity:
    """A capacity pair with its offering looked up (None when undeclared)."""

    pair: CapacityWeight
    offering: CapacityOffering | None


class CompatibilityValidator:
    """Cross-checks capability sets and resource granularity of bindings."""

    def __init__(self, graph: ResourceGraph) -> None:
        self._graph = graph

    # === Binding checks ===

    def check_binding(self, binding: ServiceBinding) -> None:
        """Fail fast: raise the first issue found for ``binding``."""
        issues = self.validate_binding(binding)
        if issues:
            raise DeclarationError.from_issue(issues[0])

    def validate_binding(
        self,
        binding: ServiceBinding,
        extra_offerings: tuple[CapacityOffering, ...] = (),
    ) -> list[ValidationIssue]:
        """
        Collect every issue for one binding.

        Args:
            binding: Binding to check (need not be in the graph yet)
            extra_offerings: Offerings about to be attached; considered part
                of the cluster default strategy when they carry a default weight
        """
        subject = str(binding.handle)
        issues: list[ValidationIssue] = []

        cluster = self._graph.get(binding.cluster_handle)
        if not isinstance(cluster, Cluster):
            issues.append(_issue(
                ErrorKind.DANGLING_REFERENCE,
                f"{subject} references undeclared cluster '{binding.cluster}'",
                subject, str(binding.cluster_handle),
            ))

        workload = self._graph.get(binding.workload_handle)
        if not isinstance(workload, WorkloadSpec):
            issues.append(_issue(
                ErrorKind.DANGLING_REFERENCE,
                f"{subject} references undeclared workload '{binding.workload}'",
                subject, str(binding.workload_handle),
            ))

        issues.extend(self._check_declaration(binding))

        resolved = self.resolve_capacity(binding, extra_offerings)
        if not resolved:
            issues.append(_issue(
                ErrorKind.MISSING_CAPACITY_SOURCE,
                f"{subject} declares no capacity offerings and cluster "
                f"'{binding.cluster}' has no default capacity strategy",
                subject, str(binding.cluster_handle),
            ))

        offerings: list[CapacityOffering] = []
        foreign: set[str] = set()
        for item in resolved:
            if item.offering is None:
                issues.append(_issue(
                    ErrorKind.DANGLING_REFERENCE,
                    f"{subject} references undeclared offering '{item.pair.offering}'",
                    subject, str(item.pair.offering_handle),
                ))
                continue
            if item.offering.cluster != binding.cluster:
                issues.append(_issue(
                    ErrorKind.CLUSTER_MISMATCH,
                    f"{subject} targets cluster '{binding.cluster}' but offering "
                    f"'{item.offering.identifier}' is attached to '{item.offering.cluster}'",
                    subject, str(item.offering.handle),
                    binding_cluster=binding.cluster,
                    offering_cluster=item.offering.cluster,
                ))
                foreign.add(item.offering.identifier)
            offerings.append(item.offering)

        if not isinstance(workload, WorkloadSpec):
            return issues

        if not workload.capabilities:
            issues.append(_issue(
                ErrorKind.INVALID_DECLARATION,
                f"{workload.handle} declares an empty capability set",
                str(workload.handle), subject,
            ))

        compatible: list[CapacityOffering] = []
        for offering in offerings:
            if not offering.capabilities:
                issues.append(_issue(
                    ErrorKind.INVALID_DECLARATION,
                    f"{offering.handle} declares an empty capability set",
                    str(offering.handle), subject,
                ))
            if workload.capabilities.intersects(offering.capabilities):
                # Offerings on another cluster never contribute launch modes
                if offering.identifier not in foreign:
                    compatible.append(offering)
                continue
            issues.append(_issue(
                ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE,
                f"{subject}: workload '{workload.identifier}' "
                f"[{workload.capabilities}] shares no capability with offering "
                f"'{offering.identifier}' [{offering.capabilities}]",
                subject, str(workload.handle), str(offering.handle),
                workload_capabilities=workload.capabilities.names(),
                offering_capabilities=offering.capabilities.names(),
            ))

        if compatible:
            modes = effective_modes(workload, compatible)
            issues.extend(_check_granularity(binding, workload, modes))
            issues.extend(_check_serverless_size(binding, workload, modes))

        return issues

    def validate_offering_attachment(self, offering: CapacityOffering) -> list[ValidationIssue]:
        """Re-check default-strategy bindings on the offering's cluster."""
        if offering.default_weight is None:
            return []
        issues: list[ValidationIssue] = []
        for binding in self.default_strategy_bindings(offering.cluster):
            issues.extend(self.validate_binding(binding, extra_offerings=(offering,)))
        return issues

    def check_offering_attachment(self, offering: CapacityOffering) -> None:
        issues = self.validate_offering_attachment(offering)
        if issues:
            raise DeclarationError.from_issue(issues[0])

    def validate_all(self) -> list[ValidationIssue]:
        """Every binding issue in the current graph, in declaration order."""
        issues: list[ValidationIssue] = []
        for binding in self._graph.entities(EntityKind.SERVICE_BINDING):
            if isinstance(binding, ServiceBinding):
                issues.extend(self.validate_binding(binding))
        return issues

    # === Resolution ===

    def resolve_capacity(
        self,
        binding: ServiceBinding,
        extra_offerings: tuple[CapacityOffering, ...] = (),
    ) -> list[ResolvedCapacity]:
        """Explicit capacity pairs, or the cluster default strategy."""
        if binding.capacity:
            return [
                ResolvedCapacity(pair, self._offering(pair.offering_handle))
                for pair in binding.capacity
            ]

        defaults = [
            o for o in self.cluster_offerings(binding.cluster) if o.default_weight is not None
        ]
        defaults.extend(
            o for o in extra_offerings
            if o.cluster == binding.cluster and o.default_weight is not None
        )
        return [
            ResolvedCapacity(CapacityWeight(o.identifier, o.default_weight or 0), o)
            for o in defaults
        ]

    def cluster_offerings(self, cluster: str) -> list[CapacityOffering]:
        return [
            o for o in self._graph.entities(EntityKind.CAPACITY_OFFERING)
            if isinstance(o, CapacityOffering) and o.cluster == cluster
        ]

    def default_strategy_bindings(self, cluster: str) -> list[ServiceBinding]:
        return [
            b for b in self._graph.entities(EntityKind.SERVICE_BINDING)
            if isinstance(b, ServiceBinding) and b.cluster == cluster and b.uses_default_strategy
        ]

    def _offering(self, handle: NodeHandle) -> CapacityOffering | None:
        entity = self._graph.get(handle)
        return entity if isinstance(entity, CapacityOffering) else None

    def _check_declaration(self, binding: ServiceBinding) -> list[ValidationIssue]:
        subject = str(binding.handle)
        issues: list[ValidationIssue] = []
        if binding.desired_count < 0:
            issues.append(_issue(
                ErrorKind.INVALID_DECLARATION,
                f"{subject}: desired count must not be negative (got {binding.desired_count})",
                subject,
            ))
        if not binding.capacity:
            return issues

        for pair in binding.capacity:
            if pair.weight < 0 or pair.base < 0:
                issues.append(_issue(
                    ErrorKind.INVALID_DECLARATION,
                    f"{subject}: offering '{pair.offering}' has negative weight or base",
                    subject, str(pair.offering_handle),
                ))
        if all(pair.weight == 0 for pair in binding.capacity):
            issues.append(_issue(
                ErrorKind.INVALID_DECLARATION,
                f"{subject}: at least one capacity offering needs a positive weight",
                subject,
            ))
        if sum(1 for pair in binding.capacity if pair.base > 0) > 1:
            issues.append(_issue(
                ErrorKind.INVALID_DECLARATION,
                f"{subject}: only one capacity offering may define a base",
                subject,
            ))
        seen: set[str] = set()
        for pair in binding.capacity:
            if pair.offering in seen:
                issues.append(_issue(
                    ErrorKind.INVALID_DECLARATION,
                    f"{subject}: offering '{pair.offering}' is listed more than once",
                    subject, str(pair.offering_handle),
                ))
            seen.add(pair.offering)
        return issues


def effective_modes(
    workload: WorkloadSpec, offerings: list[CapacityOffering]
) -> CapabilitySet:
    """Union over offerings of workload ∩ offering capabilities."""
    modes = CapabilitySet()
    for offering in offerings:
        modes = modes | (workload.capabilities & offering.capabilities)
    return modes


def _check_granularity(
    binding: ServiceBinding, workload: WorkloadSpec, modes: CapabilitySet
) -> list[ValidationIssue]:
    subject = str(binding.handle)
    wl = str(workload.handle)
    issues: list[ValidationIssue] = []
    task = workload.resources
    totals = workload.step_totals()

    if modes and all(mode in TASK_LEVEL_MODES for mode in modes) and not task.complete:
        issues.append(_issue(
            ErrorKind.INCONSISTENT_RESOURCE_GRANULARITY,
            f"{subject}: launch modes [{modes}] require workload-level cpu and memory, "
            f"but workload '{workload.identifier}' does not declare both",
            subject, wl,
            modes=modes.names(),
        ))
        return issues

    if not task.empty:
        for label, declared, summed in (
            ("cpu", task.cpu, totals.cpu),
            ("memory", task.memory_mib, totals.memory_mib),
        ):
            if declared is not None and summed is not None and summed > declared:
                issues.append(_issue(
                    ErrorKind.INCONSISTENT_RESOURCE_GRANULARITY,
                    f"{wl}: per-step {label} ({summed}) exceeds the workload-level "
                    f"{label} ({declared})",
                    subject, wl,
                    resource=label, task_level=declared, step_total=summed,
                ))
        return issues

    incomplete = [s.name for s in workload.steps if not s.resources.complete]
    if not workload.steps or incomplete:
        issues.append(_issue(
            ErrorKind.INCONSISTENT_RESOURCE_GRANULARITY,
            f"{wl} declares no workload-level resources, so every step must declare "
            f"cpu and memory"
            + (f" (missing on: {', '.join(incomplete)})" if incomplete else ""),
            subject, wl,
            steps=incomplete,
        ))
    return issues


def _check_serverless_size(
    binding: ServiceBinding, workload: WorkloadSpec, modes: CapabilitySet
) -> list[ValidationIssue]:
    if set(modes) != {Capability.SERVERLESS}:
        return []
    cpu, memory = workload.resources.cpu, workload.resources.memory_mib
    if cpu is None or memory is None:
        # Reported by the granularity check
        return []
    allowed = SERVERLESS_TASK_SIZES.get(cpu)
    if allowed is not None and memory in allowed:
        return []
    if allowed is None:
        hint = f"cpu must be one of {sorted(SERVERLESS_TASK_SIZES)}"
    else:
        hint = f"memory for cpu {cpu} must be between {min(allowed)} and {max(allowed)} MiB"
    return [_issue(
        ErrorKind.UNSUPPORTED_RESOURCE_SIZE,
        f"{binding.handle}: serverless capacity cannot run workload "
        f"'{workload.identifier}' with cpu={cpu} memory={memory}; {hint}",
        str(binding.handle), str(workload.handle),
        cpu=cpu, memory=memory,
    )]


def _issue(kind: ErrorKind, message: str, *subjects: str, **details: object) -> ValidationIssue:
    return ValidationIssue(kind=kind, message=message, subjects=tuple(subjects), details=details)
