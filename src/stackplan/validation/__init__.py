"""Compatibility validation for service bindings."""

from stackplan.validation.compatibility import (
    SERVERLESS_TASK_SIZES,
    CompatibilityValidator,
    ResolvedCapacity,
    effective_modes,
)

__all__ = [
    "SERVERLESS_TASK_SIZES",
    "CompatibilityValidator",
    "ResolvedCapacity",
    "effective_modes",
]
