"""
Declarative deployment entities.

Clusters, capacity offerings, workload specs and service bindings are
immutable values owned by the ResourceGraph. Entities reference each other
by identifier only; ``references()`` lists the handles that become
structural edges when the entity is added to a graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from stackplan.capabilities import CapabilitySet


class EntityKind(Enum):
    """Entity classes; identifiers are unique per kind."""

    CLUSTER = "cluster"
    CAPACITY_OFFERING = "offering"
    WORKLOAD = "workload"
    SERVICE_BINDING = "service"


class EdgeKind(Enum):
    """Dependency edge classification."""

    STRUCTURAL = "structural"  # Declared reference; target must exist first
    ORDERING = "ordering"  # Realize target first, no structural requirement


@dataclass(frozen=True)
class NodeHandle:
    """Stable reference to a node in a ResourceGraph."""

    kind: EntityKind
    identifier: str

    @classmethod
    def parse(cls, value: str) -> NodeHandle:
        """Parse ``kind/identifier`` (e.g. ``service/web``)."""
        kind_str, sep, identifier = value.partition("/")
        if not sep or not identifier:
            raise ValueError(f"Invalid node reference '{value}'. Expected '<kind>/<identifier>'")
        try:
            kind = EntityKind(kind_str)
        except ValueError:
            valid = ", ".join(k.value for k in EntityKind)
            raise ValueError(f"Unknown entity kind '{kind_str}'. Must be one of: {valid}") from None
        return cls(kind, identifier)

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.identifier}"


@dataclass(frozen=True)
class Cluster:
    """A cluster that capacity offerings attach to and services run on."""

    identifier: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    kind = EntityKind.CLUSTER

    @property
    def handle(self) -> NodeHandle:
        return NodeHandle(self.kind, self.identifier)

    def references(self) -> tuple[NodeHandle, ...]:
        return ()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.identifier}
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass(frozen=True)
class InstanceRequirements:
    """Host selection constraints for managed capacity."""

    vcpu_min: int | None = None
    memory_min_mib: int | None = None
    cpu_manufacturers: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.vcpu_min is not None:
            result["vcpu_min"] = self.vcpu_min
        if self.memory_min_mib is not None:
            result["memory_min_mib"] = self.memory_min_mib
        if self.cpu_manufacturers:
            result["cpu_manufacturers"] = list(self.cpu_manufacturers)
        return result


@dataclass(frozen=True)
class CapacityOffering:
    """A provisionable source of compute capacity attached to one cluster."""

    identifier: str
    cluster: str
    capabilities: CapabilitySet
    weight: int = 1
    default_weight: int | None = None  # Joins the cluster default strategy when set
    instance_requirements: InstanceRequirements | None = None

    kind = EntityKind.CAPACITY_OFFERING

    @property
    def handle(self) -> NodeHandle:
        return NodeHandle(self.kind, self.identifier)

    @property
    def cluster_handle(self) -> NodeHandle:
        return NodeHandle(EntityKind.CLUSTER, self.cluster)

    def references(self) -> tuple[NodeHandle, ...]:
        return (self.cluster_handle,)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.identifier,
            "cluster": self.cluster,
            "capabilities": self.capabilities.names(),
            "weight": self.weight,
        }
        if self.default_weight is not None:
            result["default_weight"] = self.default_weight
        if self.instance_requirements is not None:
            result["instance_requirements"] = self.instance_requirements.to_dict()
        return result


@dataclass(frozen=True)
class ResourceRequirements:
    """CPU units (1024 = 1 vCPU) and memory in MiB; either may be unset."""

    cpu: int | None = None
    memory_mib: int | None = None

    @property
    def complete(self) -> bool:
        return self.cpu is not None and self.memory_mib is not None

    @property
    def empty(self) -> bool:
        return self.cpu is None and self.memory_mib is None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.cpu is not None:
            result["cpu"] = self.cpu
        if self.memory_mib is not None:
            result["memory"] = self.memory_mib
        return result


@dataclass(frozen=True)
class ExecutionStep:
    """One container of a workload."""

    name: str
    image: str | None = None
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    port: int | None = None
    essential: bool = True

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "essential": self.essential}
        if self.image:
            result["image"] = self.image
        if self.port is not None:
            result["port"] = self.port
        result.update(self.resources.to_dict())
        return result


@dataclass(frozen=True)
class WorkloadSpec:
    """Resource and compatibility contract of a unit of work.

    ``capabilities`` is always declared explicitly and never derived from
    the steps.
    """

    identifier: str
    capabilities: CapabilitySet
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    steps: tuple[ExecutionStep, ...] = ()

    kind = EntityKind.WORKLOAD

    @property
    def handle(self) -> NodeHandle:
        return NodeHandle(self.kind, self.identifier)

    def references(self) -> tuple[NodeHandle, ...]:
        return ()

    def step_totals(self) -> ResourceRequirements:
        """Sum of declared per-step resources (None where no step declares)."""
        cpus = [s.resources.cpu for s in self.steps if s.resources.cpu is not None]
        mems = [s.resources.memory_mib for s in self.steps if s.resources.memory_mib is not None]
        return ResourceRequirements(
            cpu=sum(cpus) if cpus else None,
            memory_mib=sum(mems) if mems else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.identifier,
            "capabilities": self.capabilities.names(),
        }
        result.update(self.resources.to_dict())
        if self.steps:
            result["steps"] = [s.to_dict() for s in self.steps]
        return result


@dataclass(frozen=True)
class CapacityWeight:
    """An (offering, weight) pair in a binding's capacity strategy."""

    offering: str
    weight: int = 1
    base: int = 0

    @property
    def offering_handle(self) -> NodeHandle:
        return NodeHandle(EntityKind.CAPACITY_OFFERING, self.offering)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"offering": self.offering, "weight": self.weight}
        if self.base:
            result["base"] = self.base
        return result


@dataclass(frozen=True)
class ServiceBinding:
    """Binds a workload to a cluster through weighted capacity offerings.

    An empty ``capacity`` tuple selects the cluster's default strategy.
    """

    identifier: str
    cluster: str
    workload: str
    capacity: tuple[CapacityWeight, ...] = ()
    desired_count: int = 1
    health_check_path: str | None = None

    kind = EntityKind.SERVICE_BINDING

    @property
    def handle(self) -> NodeHandle:
        return NodeHandle(self.kind, self.identifier)

    @property
    def cluster_handle(self) -> NodeHandle:
        return NodeHandle(EntityKind.CLUSTER, self.cluster)

    @property
    def workload_handle(self) -> NodeHandle:
        return NodeHandle(EntityKind.WORKLOAD, self.workload)

    @property
    def uses_default_strategy(self) -> bool:
        return not self.capacity

    def references(self) -> tuple[NodeHandle, ...]:
        refs = [self.cluster_handle, self.workload_handle]
        for pair in self.capacity:
            if pair.offering_handle not in refs:
                refs.append(pair.offering_handle)
        return tuple(refs)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.identifier,
            "cluster": self.cluster,
            "workload": self.workload,
            "desired_count": self.desired_count,
            "capacity": [p.to_dict() for p in self.capacity],
        }
        if self.health_check_path:
            result["health_check_path"] = self.health_check_path
        return result


Entity = Union[Cluster, CapacityOffering, WorkloadSpec, ServiceBinding]
