"""
stackplan command line.

Usage:
    stackplan validate <manifest> [--output text|json]
    stackplan plan <manifest> [--output text|json]
    stackplan graph <manifest> [--format json|mermaid|dot] [--out FILE]
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from stackplan import __version__
from stackplan.config import get_settings
from stackplan.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="stackplan",
        description="Validate capacity compatibility and plan realization order for a stack",
    )
    parser.add_argument("--version", action="version", version=f"stackplan {__version__}")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level (default: %(default)s)")
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser("validate", help="Report every problem in a stack manifest")
    validate_parser.add_argument("manifest", help="Path to stack manifest YAML")
    validate_parser.add_argument("--output", choices=["text", "json"], default=settings.output_format)

    plan_parser = subparsers.add_parser("plan", help="Show the realization order (dry-run)")
    plan_parser.add_argument("manifest", help="Path to stack manifest YAML")
    plan_parser.add_argument("--output", choices=["text", "json"], default=settings.output_format)

    graph_parser = subparsers.add_parser("graph", help="Export the dependency graph")
    graph_parser.add_argument("manifest", help="Path to stack manifest YAML")
    graph_parser.add_argument("--format", choices=["json", "mermaid", "dot"], default="json")
    graph_parser.add_argument("--out", dest="output_file", help="Write to file instead of stdout")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level.upper())

    if args.command == "validate":
        from stackplan.cli.validate import validate_command

        sys.exit(validate_command(args.manifest, output_format=args.output))

    if args.command == "plan":
        from stackplan.cli.plan import plan_command

        sys.exit(plan_command(args.manifest, output_format=args.output))

    if args.command == "graph":
        from stackplan.cli.graph import graph_command

        sys.exit(graph_command(
            args.manifest,
            output_format=args.format,
            output_file=args.output_file,
        ))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
