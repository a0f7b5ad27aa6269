"""
CLI commands for stackplan.
"""

from stackplan.cli.graph import graph_command
from stackplan.cli.plan import plan_command
from stackplan.cli.validate import validate_command

__all__ = [
    "graph_command",
    "plan_command",
    "validate_command",
]
