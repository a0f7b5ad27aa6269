"""Tests for realization plans and plan execution."""

import threading

import pytest

from stackplan.core.errors import PlanNotReadyError
from stackplan.graph.models import EntityKind, NodeHandle
from stackplan.plan import (
    ApplyResult,
    ExecutionEngine,
    ProvisioningExecutor,
    RecordingExecutor,
    ResultCollector,
    plan_waves,
)


def svc(name):
    return NodeHandle(EntityKind.SERVICE_BINDING, name)


@pytest.fixture
def planned(model):
    """Validated and planned model: web runs after api."""
    for name in ("api", "web"):
        model.add_workload(["MANAGED_ELASTIC"], identifier=name, cpu=512, memory=1024)
        model.add_service_binding("main", name, capacity=["managed"], identifier=name)
    model.add_ordering("service/api", "service/web")
    assert model.validate().ok
    return model.plan()


class FailingExecutor:
    """Executor that fails for selected nodes."""

    def __init__(self, failing):
        self.failing = set(failing)
        self.realized = []
        self._lock = threading.Lock()

    def realize(self, step):
        if step.handle in self.failing:
            raise RuntimeError(f"cannot create {step.handle}")
        with self._lock:
            self.realized.append(step.handle)


class TestRealizationPlan:
    def test_steps_follow_order(self, planned):
        steps = list(planned)
        assert [s.handle for s in steps] == list(planned.order)
        assert [s.index for s in steps] == list(range(len(planned)))

    def test_plan_is_restartable(self, planned):
        first = [s.handle for s in planned]
        second = [s.handle for s in planned]
        assert first == second
        assert len(first) == 8

    def test_iterators_are_independent(self, planned):
        a, b = iter(planned), iter(planned)
        next(a)
        assert next(b).index == 0

    def test_depends_on_lists_earlier_dependencies(self, planned):
        steps = {s.handle: s for s in planned}
        web = steps[svc("web")]
        assert web.depends_on == (
            "cluster/main",
            "offering/managed",
            "service/api",
            "workload/web",
        )
        assert steps[NodeHandle(EntityKind.CLUSTER, "main")].depends_on == ()

    def test_step_carries_entity(self, planned):
        step = next(s for s in planned if s.handle == svc("api"))
        assert step.identifier == "api"
        assert step.entity.workload == "api"
        assert step.to_dict()["entity"]["capacity"] == [{"offering": "managed", "weight": 1}]

    def test_to_dict(self, planned):
        data = planned.to_dict()
        assert data["total_steps"] == 8
        assert data["already_realized"] == []
        assert data["steps"][0]["node"] == "cluster/main"

    def test_remaining_after_partial_run(self, planned):
        done = list(planned.order[:6])
        rest = planned.remaining(done)
        assert list(rest.order) == list(planned.order[6:])
        assert rest.realized == frozenset(done)
        first = next(iter(rest))
        assert first.index == 0

    def test_remaining_rejects_out_of_order_realization(self, planned):
        # web realized while api still pending
        with pytest.raises(PlanNotReadyError) as exc_info:
            planned.remaining([
                NodeHandle(EntityKind.CLUSTER, "main"),
                svc("web"),
            ])
        assert exc_info.value.details["violations"]


class TestPlanWaves:
    def test_waves_respect_dependencies(self, planned):
        waves = plan_waves(planned)
        level = {step.handle: n for n, wave in enumerate(waves) for step in wave}
        assert level[svc("web")] > level[svc("api")]
        assert sum(len(w) for w in waves) == len(planned)


class TestExecutionEngine:
    def test_recording_executor_sees_plan_order(self, planned):
        executor = RecordingExecutor()
        result = ExecutionEngine(max_parallel=1).execute(planned, executor)

        assert result.success
        assert [s.handle for s in executor.steps] == list(planned.order)
        assert set(result.realized) == set(planned.order)

    def test_recording_executor_satisfies_protocol(self):
        assert isinstance(RecordingExecutor(), ProvisioningExecutor)

    def test_parallel_execution_keeps_dependency_order(self, planned):
        executor = FailingExecutor(failing=[])
        result = ExecutionEngine(max_parallel=4).execute(planned, executor)

        assert result.success
        position = {h: i for i, h in enumerate(executor.realized)}
        assert position[svc("api")] < position[svc("web")]

    def test_failure_skips_dependents(self, planned):
        executor = FailingExecutor(failing=[svc("api")])
        result = ExecutionEngine(max_parallel=2).execute(planned, executor)

        assert not result.success
        assert svc("api") in result.failed
        assert result.failed[svc("api")].startswith("RuntimeError: cannot create")
        assert result.skipped == [svc("web")]
        assert svc("web") not in executor.realized

    def test_replan_after_failure(self, planned):
        engine = ExecutionEngine(max_parallel=2)
        result = engine.execute(planned, FailingExecutor(failing=[svc("api")]))

        retry = engine.replan(planned, result)
        assert list(retry.order) == [svc("api"), svc("web")]

        second = engine.execute(retry, RecordingExecutor())
        assert second.success
        assert second.realized == [svc("api"), svc("web")]

    def test_max_parallel_must_be_positive(self):
        with pytest.raises(ValueError, match="at least 1"):
            ExecutionEngine(max_parallel=0)

    def test_default_parallelism_from_settings(self, monkeypatch):
        from stackplan.config import get_settings

        get_settings.cache_clear()
        monkeypatch.setenv("STACKPLAN_MAX_PARALLEL_STEPS", "2")
        try:
            assert ExecutionEngine()._max_parallel == 2
        finally:
            get_settings.cache_clear()


class TestResultCollector:
    def test_blocked(self):
        collector = ResultCollector()
        collector.record(svc("a"))
        collector.record_error(svc("b"), ValueError("boom"))
        collector.record_skipped(svc("c"))

        assert not collector.blocked([svc("a")])
        assert collector.blocked([svc("a"), svc("b")])
        assert collector.blocked((svc("c"),))

    def test_finalize(self):
        collector = ResultCollector()
        collector.record(svc("a"))
        result = collector.finalize(1.5)
        assert result.duration_seconds == 1.5
        assert result.to_dict() == {
            "realized": ["service/a"],
            "failed": {},
            "skipped": [],
            "duration_seconds": 1.5,
            "success": True,
        }

    def test_empty_result_is_success(self):
        assert ApplyResult().success
