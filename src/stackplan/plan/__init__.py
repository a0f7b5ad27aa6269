"""Plan package: realization plans and their execution."""

from stackplan.plan.emitter import PlanEmitter, RealizationPlan, RealizationStep
from stackplan.plan.engine import (
    ExecutionEngine,
    ProvisioningExecutor,
    RecordingExecutor,
    plan_waves,
)
from stackplan.plan.results import ApplyResult, ResultCollector

__all__ = [
    "ApplyResult",
    "ExecutionEngine",
    "PlanEmitter",
    "ProvisioningExecutor",
    "RealizationPlan",
    "RealizationStep",
    "RecordingExecutor",
    "ResultCollector",
    "plan_waves",
]
