"""Resource graph package: entities, dependency edges and export."""

from stackplan.graph.models import (
    CapacityOffering,
    CapacityWeight,
    Cluster,
    EdgeKind,
    Entity,
    EntityKind,
    ExecutionStep,
    InstanceRequirements,
    NodeHandle,
    ResourceRequirements,
    ServiceBinding,
    WorkloadSpec,
)
from stackplan.graph.resource_graph import Edge, ResourceGraph

__all__ = [
    "CapacityOffering",
    "CapacityWeight",
    "Cluster",
    "Edge",
    "EdgeKind",
    "Entity",
    "EntityKind",
    "ExecutionStep",
    "InstanceRequirements",
    "NodeHandle",
    "ResourceGraph",
    "ResourceRequirements",
    "ServiceBinding",
    "WorkloadSpec",
]
