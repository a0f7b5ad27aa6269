"""
Resource graph: owner of all declared entities and their dependency edges.

An edge ``source -> target`` means *source depends on target*: the target
must be realized first. Every mutation is atomic under a single exclusive
lock. Either it fully applies or the graph is left untouched.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterator

import structlog

from stackplan.core.errors import (
    CycleDetectedError,
    DanglingReferenceError,
    DuplicateIdentifierError,
    GraphFrozenError,
)
from stackplan.graph.models import EdgeKind, Entity, EntityKind, NodeHandle

logger = structlog.get_logger()


@dataclass(frozen=True)
class Edge:
    """A dependency edge as exposed to readers."""

    source: NodeHandle
    target: NodeHandle
    kind: EdgeKind

    def to_dict(self) -> dict[str, str]:
        return {
            "source": str(self.source),
            "target": str(self.target),
            "kind": self.kind.value,
        }


class ResourceGraph:
    """Owns entities and dependency edges; acyclic by construction."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[NodeHandle, Entity] = {}
        self._sequence: dict[NodeHandle, int] = {}
        self._out: dict[NodeHandle, dict[NodeHandle, EdgeKind]] = {}
        self._in: dict[NodeHandle, dict[NodeHandle, EdgeKind]] = {}
        self._next_sequence = 0
        self._revision = 0
        self._frozen = False

    # === Mutation ===

    @property
    def lock(self) -> threading.RLock:
        """Exclusive lock guarding mutations; re-entrant for compound updates."""
        return self._lock

    @property
    def revision(self) -> int:
        """Incremented on every successful mutation."""
        return self._revision

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject further mutation so reads may run concurrently."""
        with self._lock:
            self._frozen = True

    def add_node(self, entity: Entity) -> NodeHandle:
        """
        Register an entity together with structural edges to its references.

        Raises:
            DuplicateIdentifierError: handle already declared for this kind
            DanglingReferenceError: a referenced entity is not declared
            GraphFrozenError: graph has been frozen
        """
        handle = entity.handle
        with self._lock:
            self._check_mutable()
            if handle in self._nodes:
                raise DuplicateIdentifierError(
                    f"{handle.kind.value} '{handle.identifier}' is already declared",
                    subjects=[str(handle)],
                )

            references = entity.references()
            missing = [ref for ref in references if ref not in self._nodes]
            if missing:
                raise DanglingReferenceError(
                    f"{handle} references undeclared "
                    + ", ".join(str(ref) for ref in missing),
                    subjects=[str(handle), *(str(ref) for ref in missing)],
                )

            self._nodes[handle] = entity
            self._sequence[handle] = self._next_sequence
            self._next_sequence += 1
            self._out[handle] = {}
            self._in[handle] = {}
            # A new node has no dependents, so its outgoing edges cannot close a cycle
            for ref in references:
                self._link(handle, ref, EdgeKind.STRUCTURAL)
            self._revision += 1

        logger.debug("node_added", node=str(handle), references=[str(r) for r in references])
        return handle

    def add_edge(
        self,
        source: NodeHandle,
        target: NodeHandle,
        kind: EdgeKind = EdgeKind.ORDERING,
    ) -> None:
        """
        Record that ``source`` depends on ``target``.

        An existing edge is upgraded to STRUCTURAL but never downgraded.

        Raises:
            DanglingReferenceError: an endpoint is not declared
            CycleDetectedError: the edge would close a cycle
            GraphFrozenError: graph has been frozen
        """
        with self._lock:
            self._check_mutable()
            missing = [h for h in (source, target) if h not in self._nodes]
            if missing:
                raise DanglingReferenceError(
                    "Edge endpoint not declared: " + ", ".join(str(h) for h in missing),
                    subjects=[str(h) for h in missing],
                )

            existing = self._out[source].get(target)
            if existing is not None:
                if kind is EdgeKind.STRUCTURAL and existing is not EdgeKind.STRUCTURAL:
                    self._link(source, target, kind)
                    self._revision += 1
                return

            path = self._path(target, source)
            if path is not None:
                cycle = [source, *path]
                logger.debug("edge_rejected", source=str(source), target=str(target))
                raise CycleDetectedError(
                    f"Edge {source} -> {target} would create a cycle: "
                    + " -> ".join(str(h) for h in cycle),
                    subjects=[str(h) for h in cycle],
                )

            self._link(source, target, kind)
            self._revision += 1

        logger.debug("edge_added", source=str(source), target=str(target), kind=kind.value)

    def remove_node(self, handle: NodeHandle) -> Entity:
        """
        Remove a node. Ordering edges touching it are dropped with it.

        Raises:
            DanglingReferenceError: node missing, or still structurally referenced
            GraphFrozenError: graph has been frozen
        """
        with self._lock:
            self._check_mutable()
            if handle not in self._nodes:
                raise DanglingReferenceError(
                    f"{handle} is not declared",
                    subjects=[str(handle)],
                )

            holders = [
                src for src, kind in self._in[handle].items() if kind is EdgeKind.STRUCTURAL
            ]
            if holders:
                raise DanglingReferenceError(
                    f"{handle} is still referenced by "
                    + ", ".join(str(h) for h in self._ordered(holders)),
                    subjects=[str(handle), *(str(h) for h in self._ordered(holders))],
                )

            for target in self._out.pop(handle):
                del self._in[target][handle]
            for source in self._in.pop(handle):
                del self._out[source][handle]
            del self._sequence[handle]
            entity = self._nodes.pop(handle)
            self._revision += 1

        logger.debug("node_removed", node=str(handle))
        return entity

    # === Queries ===

    def __contains__(self, handle: object) -> bool:
        return handle in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeHandle]:
        return iter(self.nodes())

    def get(self, handle: NodeHandle) -> Entity | None:
        return self._nodes.get(handle)

    def nodes(self) -> list[NodeHandle]:
        """All handles in declaration order."""
        with self._lock:
            return list(self._nodes)

    def entities(self, kind: EntityKind) -> list[Entity]:
        """All entities of one kind, in declaration order."""
        with self._lock:
            return [e for h, e in self._nodes.items() if h.kind is kind]

    def sequence(self, handle: NodeHandle) -> int:
        """Declaration sequence number; stable across removals of other nodes."""
        return self._sequence[handle]

    def dependencies(self, handle: NodeHandle) -> dict[NodeHandle, EdgeKind]:
        """Nodes ``handle`` depends on."""
        with self._lock:
            return dict(self._out[handle])

    def dependents(self, handle: NodeHandle) -> dict[NodeHandle, EdgeKind]:
        """Nodes that depend on ``handle``."""
        with self._lock:
            return dict(self._in[handle])

    def edges(self) -> list[Edge]:
        """All edges, ordered by source then target declaration order."""
        with self._lock:
            return [
                Edge(source, target, kind)
                for source in self._nodes
                for target, kind in sorted(
                    self._out[source].items(), key=lambda item: self._sequence[item[0]]
                )
            ]

    # === Internals ===

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError("Graph is frozen; no further declarations are accepted")

    def _link(self, source: NodeHandle, target: NodeHandle, kind: EdgeKind) -> None:
        self._out[source][target] = kind
        self._in[target][source] = kind

    def _ordered(self, handles: list[NodeHandle]) -> list[NodeHandle]:
        return sorted(handles, key=lambda h: self._sequence[h])

    def _path(self, start: NodeHandle, goal: NodeHandle) -> list[NodeHandle] | None:
        """Dependency path from ``start`` to ``goal`` (inclusive), if any."""
        if start == goal:
            return [start]
        parents: dict[NodeHandle, NodeHandle] = {}
        stack = [start]
        visited = {start}
        while stack:
            current = stack.pop()
            for nxt in self._out[current]:
                if nxt in visited:
                    continue
                parents[nxt] = current
                if nxt == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parents[path[-1]])
                    return list(reversed(path))
                visited.add(nxt)
                stack.append(nxt)
        return None
