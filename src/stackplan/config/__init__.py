"""
stackplan configuration.

Pydantic-based settings read from ``STACKPLAN_`` environment variables
and an optional ``.env`` file.
"""

from stackplan.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
