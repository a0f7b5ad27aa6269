"""Execution engine driving a provisioning executor over a realization plan."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, runtime_checkable

import structlog

from stackplan.config import get_settings
from stackplan.graph.models import NodeHandle
from stackplan.plan.emitter import RealizationPlan, RealizationStep
from stackplan.plan.results import ApplyResult, ResultCollector

logger = structlog.get_logger()


@runtime_checkable
class ProvisioningExecutor(Protocol):
    """External collaborator that creates the resource for one step."""

    def realize(self, step: RealizationStep) -> None:
        """Realize the step; raise to report failure."""
        ...


class RecordingExecutor:
    """Executor that only records the steps it is handed (dry run)."""

    def __init__(self) -> None:
        self.steps: list[RealizationStep] = []

    def realize(self, step: RealizationStep) -> None:
        self.steps.append(step)


class ExecutionEngine:
    """Runs plan steps wave by wave with bounded concurrency."""

    def __init__(self, max_parallel: int | None = None) -> None:
        if max_parallel is None:
            max_parallel = get_settings().max_parallel_steps
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        self._max_parallel = max_parallel

    def execute(self, plan: RealizationPlan, executor: ProvisioningExecutor) -> ApplyResult:
        """Realize every step whose dependencies succeeded; skip the rest."""
        collector = ResultCollector()
        start = time.monotonic()
        waves = plan_waves(plan)
        total_steps = len(plan)

        with ThreadPoolExecutor(max_workers=self._max_parallel) as pool:
            for number, wave in enumerate(waves, 1):
                runnable: list[RealizationStep] = []
                for step in wave:
                    if collector.blocked(_dependency_handles(step)):
                        logger.warning("step_skipped", node=str(step.handle))
                        collector.record_skipped(step.handle)
                    else:
                        runnable.append(step)

                logger.debug("wave_started", wave=number, steps=len(runnable), total=total_steps)
                futures = [(step, pool.submit(executor.realize, step)) for step in runnable]
                for step, future in futures:
                    try:
                        future.result()
                        collector.record(step.handle)
                    except Exception as e:
                        logger.warning("step_failed", node=str(step.handle), err=str(e))
                        collector.record_error(step.handle, e)

        result = collector.finalize(time.monotonic() - start)
        logger.info(
            "plan_executed",
            realized=len(result.realized),
            failed=len(result.failed),
            skipped=len(result.skipped),
        )
        return result

    def replan(self, plan: RealizationPlan, result: ApplyResult) -> RealizationPlan:
        """Remaining plan after a partial run (failed and skipped steps)."""
        return plan.remaining(result.realized)


def plan_waves(plan: RealizationPlan) -> list[list[RealizationStep]]:
    """Group plan steps so each step's dependencies lie in earlier waves."""
    level: dict[NodeHandle, int] = {}
    waves: list[list[RealizationStep]] = []
    for step in plan:
        deps = [level[h] for h in _dependency_handles(step) if h in level]
        current = max(deps) + 1 if deps else 0
        level[step.handle] = current
        if current == len(waves):
            waves.append([])
        waves[current].append(step)
    return waves


def _dependency_handles(step: RealizationStep) -> tuple[NodeHandle, ...]:
    return tuple(NodeHandle.parse(ref) for ref in step.depends_on)
