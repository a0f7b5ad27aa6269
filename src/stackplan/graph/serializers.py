"""
Graph serializers: JSON, Mermaid, and DOT output formats.

Pure functions that convert a ResourceGraph to string output. Edges point
from a node to the node it depends on.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from stackplan.graph.models import EdgeKind, EntityKind

if TYPE_CHECKING:
    from stackplan.graph.resource_graph import ResourceGraph


def graph_to_dict(graph: ResourceGraph) -> dict[str, Any]:
    """Serialize nodes and edges to a dictionary."""
    nodes = []
    for handle in graph.nodes():
        entity = graph.get(handle)
        nodes.append({"node": str(handle), "kind": handle.kind.value, "entity": entity.to_dict()})
    edges = [edge.to_dict() for edge in graph.edges()]
    return {
        "nodes": nodes,
        "edges": edges,
        "stats": {"node_count": len(nodes), "edge_count": len(edges)},
    }


def serialize_json(graph: ResourceGraph) -> str:
    return json.dumps(graph_to_dict(graph), indent=2)


def serialize_mermaid(graph: ResourceGraph) -> str:
    """
    Serialize graph as Mermaid flowchart.

    Ordering edges are dashed; node shape reflects the entity kind.
    """
    shapes = {
        EntityKind.CLUSTER: ("[[", "]]"),
        EntityKind.CAPACITY_OFFERING: ("[(", ")]"),
        EntityKind.WORKLOAD: ("[/", "/]"),
        EntityKind.SERVICE_BINDING: ("(", ")"),
    }
    lines: list[str] = ["graph LR"]

    for handle in graph.nodes():
        left, right = shapes[handle.kind]
        lines.append(f'    {_node_id(str(handle))}{left}"{handle}"{right}')

    lines.append("")

    for edge in graph.edges():
        src = _node_id(str(edge.source))
        tgt = _node_id(str(edge.target))
        arrow = "-.->" if edge.kind is EdgeKind.ORDERING else "-->"
        lines.append(f"    {src} {arrow} {tgt}")

    return "\n".join(lines)


def serialize_dot(graph: ResourceGraph) -> str:
    """
    Serialize graph as Graphviz DOT digraph.

    Nord palette per entity kind, ordering edges dashed.
    """
    kind_colors = {
        EntityKind.CLUSTER: "#5E81AC",
        EntityKind.CAPACITY_OFFERING: "#A3BE8C",
        EntityKind.WORKLOAD: "#D08770",
        EntityKind.SERVICE_BINDING: "#B48EAD",
    }
    kind_shapes = {
        EntityKind.CLUSTER: "box3d",
        EntityKind.CAPACITY_OFFERING: "cylinder",
        EntityKind.WORKLOAD: "parallelogram",
        EntityKind.SERVICE_BINDING: "box",
    }

    lines: list[str] = [
        "digraph stack {",
        "    rankdir=LR;",
        '    node [style=filled, fontname="sans-serif", fontcolor="#ECEFF4"];',
        '    edge [fontname="sans-serif", fontsize=10];',
        "",
    ]

    for handle in graph.nodes():
        attrs = [
            f'label="{handle}"',
            f'fillcolor="{kind_colors[handle.kind]}"',
            f"shape={kind_shapes[handle.kind]}",
        ]
        lines.append(f"    {_node_id(str(handle))} [{', '.join(attrs)}];")

    lines.append("")

    for edge in graph.edges():
        src = _node_id(str(edge.source))
        tgt = _node_id(str(edge.target))
        attr_str = " [style=dashed]" if edge.kind is EdgeKind.ORDERING else ""
        lines.append(f"    {src} -> {tgt}{attr_str};")

    lines.append("}")

    return "\n".join(lines)


def _node_id(name: str) -> str:
    """Convert node reference to a valid Mermaid/DOT identifier."""
    return re.sub(r"[^a-zA-Z0-9]", "_", name)
