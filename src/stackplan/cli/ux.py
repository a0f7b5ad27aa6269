"""
Rich console rendering for stackplan commands.

Respects NO_COLOR and FORCE_COLOR; rich drops styling on its own when
stdout is not a terminal, so piped output stays plain text.
"""

from __future__ import annotations

import os
from typing import Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from stackplan.core.errors import ValidationIssue
from stackplan.graph.models import EntityKind, NodeHandle

# Nord palette; entity kinds share the colors used by the DOT export
STACKPLAN_THEME = Theme(
    {
        "success": "#A3BE8C",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
        "kind.cluster": "#5E81AC",
        "kind.offering": "#A3BE8C",
        "kind.workload": "#D08770",
        "kind.service": "#B48EAD",
    }
)

console = Console(
    theme=STACKPLAN_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def success(message: str) -> None:
    console.print(f"[success]✓ {message}[/success]")


def error(message: str) -> None:
    console.print(f"[error]✗ {message}[/error]")


def header(title: str) -> None:
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def node_label(handle: NodeHandle | str) -> str:
    """Markup for a ``kind/id`` reference, colored by entity kind."""
    if isinstance(handle, str):
        handle = NodeHandle.parse(handle)
    return f"[kind.{handle.kind.value}]{handle}[/kind.{handle.kind.value}]"


def print_issues(issues: Iterable[ValidationIssue]) -> None:
    """Print issues grouped by kind, in first-seen order."""
    by_kind: dict[str, list[ValidationIssue]] = {}
    for issue in issues:
        by_kind.setdefault(issue.kind.value, []).append(issue)

    for kind, grouped in by_kind.items():
        console.print(f"[bold]{kind}[/bold] ({len(grouped)})")
        for issue in grouped:
            console.print(f"  [error]•[/error] {escape(issue.message)}", highlight=False)
        console.print()


def print_steps(title: str, rows: Iterable[tuple[int, NodeHandle, tuple[str, ...]]]) -> None:
    """Table of ``(index, node, depends_on)`` rows."""
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Node")
    table.add_column("Kind", style="muted")
    table.add_column("Depends on")

    for index, handle, depends_on in rows:
        table.add_row(
            str(index + 1),
            node_label(handle),
            handle.kind.value,
            ", ".join(node_label(dep) for dep in depends_on) or "-",
        )

    console.print(table)


def kind_counts(handles: Iterable[NodeHandle]) -> str:
    """``2 clusters, 3 services``-style summary in EntityKind order."""
    counts = {kind: 0 for kind in EntityKind}
    for handle in handles:
        counts[handle.kind] += 1
    return ", ".join(f"{n} {kind.value}(s)" for kind, n in counts.items() if n)
