"""stackplan - compatibility validation and realization planning for container deployments."""

from stackplan.capabilities import Capability, CapabilitySet
from stackplan.model import DeploymentModel, ValidationReport

__version__ = "0.1.0"

__all__ = [
    "Capability",
    "CapabilitySet",
    "DeploymentModel",
    "ValidationReport",
    "__version__",
]
