"""
CLI command for graph export.

Commands:
    stackplan graph <manifest>                  - Export as JSON
    stackplan graph <manifest> --format mermaid - Export as Mermaid
    stackplan graph <manifest> --format dot     - Export as DOT
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from stackplan.cli.ux import console, error
from stackplan.core.errors import ExitCode, main_with_error_handling
from stackplan.graph.serializers import serialize_dot, serialize_json, serialize_mermaid
from stackplan.logging import manifest_context
from stackplan.manifest import load_manifest

SERIALIZERS = {
    "json": serialize_json,
    "mermaid": serialize_mermaid,
    "dot": serialize_dot,
}


@main_with_error_handling()
def graph_command(
    manifest_file: str,
    output_format: str = "json",
    output_file: Optional[str] = None,
) -> int:
    """
    Export the dependency graph of a stack manifest.

    Args:
        manifest_file: Path to stack manifest YAML
        output_format: Output format (json, mermaid, dot)
        output_file: Optional file path for output

    Returns:
        Exit code (0 on success)
    """
    serializer = SERIALIZERS.get(output_format)
    if serializer is None:
        error(f"Unknown format: {output_format}")
        return ExitCode.CONFIG_ERROR

    with manifest_context(manifest_file, "graph"):
        loaded = load_manifest(manifest_file)
    output = serializer(loaded.model.graph)

    if output_file:
        Path(output_file).write_text(output + "\n")
        console.print(f"[success]✓[/success] Graph written to {output_file}")
    else:
        print(output)

    return ExitCode.SUCCESS
