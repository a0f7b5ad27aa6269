"""
Validate command.
"""

from __future__ import annotations

import json

from stackplan.cli.ux import console, error, header, kind_counts, print_issues, success
from stackplan.core.errors import ExitCode, main_with_error_handling
from stackplan.logging import manifest_context
from stackplan.manifest import load_manifest


@main_with_error_handling()
def validate_command(manifest_file: str, output_format: str = "text") -> int:
    """
    Validate a stack manifest and report every problem found.

    Args:
        manifest_file: Path to stack manifest YAML
        output_format: Output format (text, json)

    Returns:
        Exit code (0 = valid, 12 = validation errors)
    """
    with manifest_context(manifest_file, "validate"):
        loaded = load_manifest(manifest_file)
        report = loaded.validate()

    if output_format == "json":
        print(json.dumps(report.to_dict(), indent=2))
        return ExitCode.SUCCESS if report.ok else ExitCode.VALIDATION_ERROR

    header("Validate Stack Manifest")
    console.print()

    if report.ok:
        success(f"Valid stack manifest ({report.node_count} entities)")
        console.print(f"  [muted]{kind_counts(loaded.model.graph.nodes())}[/muted]")
        console.print()
        return ExitCode.SUCCESS

    error(f"{len(report.issues)} problem(s) found")
    console.print()
    print_issues(report.issues)
    return ExitCode.VALIDATION_ERROR
