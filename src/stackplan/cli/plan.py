"""
CLI command for planning the realization order of a stack manifest.
"""

from __future__ import annotations

import json

from rich.markup import escape

from stackplan.cli.ux import console, error, header, node_label, print_issues, print_steps
from stackplan.core.errors import ExitCode, main_with_error_handling
from stackplan.logging import manifest_context
from stackplan.manifest import load_manifest
from stackplan.plan.emitter import RealizationPlan
from stackplan.plan.engine import plan_waves


def print_plan_summary(plan: RealizationPlan, title: str) -> None:
    """Print the ordered steps and the waves they can run in."""
    header(f"Plan: {escape(title)}")
    console.print()

    print_steps("Realization order", ((s.index, s.handle, s.depends_on) for s in plan))
    console.print()

    waves = plan_waves(plan)
    console.print(f"[bold]Total:[/bold] {len(plan)} steps in {len(waves)} waves")
    for number, wave in enumerate(waves, 1):
        names = ", ".join(node_label(step.handle) for step in wave)
        console.print(f"  [muted]└[/muted] wave {number}: {names}")
    console.print()


@main_with_error_handling()
def plan_command(manifest_file: str, output_format: str = "text") -> int:
    """
    Validate a stack manifest and print its realization plan.

    Args:
        manifest_file: Path to stack manifest YAML
        output_format: Output format (text, json)

    Returns:
        Exit code (0 = planned, 12 = validation errors)
    """
    with manifest_context(manifest_file, "plan"):
        loaded = load_manifest(manifest_file)
        report = loaded.validate()
        plan = loaded.plan() if report.ok else None

    if plan is None:
        if output_format == "json":
            print(json.dumps(report.to_dict(), indent=2))
        else:
            error("Cannot plan: manifest has validation errors")
            console.print()
            print_issues(report.issues)
        return ExitCode.VALIDATION_ERROR

    if output_format == "json":
        print(json.dumps(plan.to_dict(), indent=2))
    else:
        print_plan_summary(plan, manifest_file)

    return ExitCode.SUCCESS
