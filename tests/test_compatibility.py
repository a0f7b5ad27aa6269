"""Tests for capability compatibility and resource granularity checks."""

import pytest

from stackplan.capabilities import CapabilitySet
from stackplan.core.errors import (
    ClusterMismatchError,
    DanglingReferenceError,
    ErrorKind,
    IncompatibleCapacitySourceError,
    InconsistentResourceGranularityError,
    InvalidDeclarationError,
    MissingCapacitySourceError,
    UnsupportedResourceSizeError,
)
from stackplan.graph.models import (
    CapacityOffering,
    CapacityWeight,
    EdgeKind,
    EntityKind,
    ExecutionStep,
    NodeHandle,
    ResourceRequirements,
    ServiceBinding,
)
from stackplan.model import DeploymentModel
from stackplan.validation import CompatibilityValidator, effective_modes


def _step(name, cpu=None, memory=None):
    return ExecutionStep(name=name, resources=ResourceRequirements(cpu=cpu, memory_mib=memory))


class TestCapabilityIntersection:
    def test_managed_workload_on_fixed_host_offering_rejected(self, model):
        model.add_workload(["MANAGED_ELASTIC"], identifier="web", cpu=1024, memory=2048)

        with pytest.raises(IncompatibleCapacitySourceError) as exc_info:
            model.add_service_binding("main", "web", capacity=["hosts"], identifier="web")

        error = exc_info.value
        assert error.kind is ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE
        assert "workload/web" in error.subjects
        assert "offering/hosts" in error.subjects
        assert "'web'" in error.message and "'hosts'" in error.message
        assert error.details["workload_capabilities"] == ["MANAGED_ELASTIC"]
        assert error.details["offering_capabilities"] == ["FIXED_HOST"]
        assert NodeHandle(EntityKind.SERVICE_BINDING, "web") not in model.graph

    def test_multi_mode_workload_on_managed_offering_accepted(self, model):
        model.add_workload(
            "FIXED_HOST|MANAGED_ELASTIC", identifier="web", cpu=1024, memory=2048
        )
        handle = model.add_service_binding("main", "web", capacity=["managed"], identifier="web")
        assert handle in model.graph
        assert model.validate().ok

    def test_every_offering_must_intersect(self, model):
        model.add_workload(["FIXED_HOST"], identifier="batch", cpu=512, memory=1024)
        with pytest.raises(IncompatibleCapacitySourceError, match="'serverless'"):
            model.add_service_binding(
                "main", "batch", capacity=[("hosts", 1), ("serverless", 1)]
            )

    def test_empty_workload_capabilities_reported(self, model):
        model.add_workload([], identifier="nothing", cpu=256, memory=512)
        with pytest.raises(InvalidDeclarationError, match="empty capability set"):
            model.add_service_binding("main", "nothing", capacity=["hosts"])


class TestResourceGranularity:
    def test_managed_mode_requires_task_level_resources(self, model):
        model.add_workload(
            ["MANAGED_ELASTIC"],
            identifier="web",
            steps=[_step("web", cpu=512, memory=1024)],
        )
        with pytest.raises(InconsistentResourceGranularityError) as exc_info:
            model.add_service_binding("main", "web", capacity=["managed"])
        assert exc_info.value.details["modes"] == ["MANAGED_ELASTIC"]

    def test_fixed_host_accepts_per_step_resources(self, model):
        model.add_workload(
            ["FIXED_HOST"],
            identifier="web",
            steps=[_step("web", 512, 1024), _step("sidecar", 128, 256)],
        )
        model.add_service_binding("main", "web", capacity=["hosts"], identifier="web")
        assert model.validate().ok

    def test_fixed_host_without_task_level_needs_complete_steps(self, model):
        model.add_workload(
            ["FIXED_HOST"],
            identifier="web",
            steps=[_step("web", 512, 1024), _step("sidecar", cpu=128)],
        )
        with pytest.raises(InconsistentResourceGranularityError, match="sidecar"):
            model.add_service_binding("main", "web", capacity=["hosts"])

    def test_fixed_host_without_any_resources_rejected(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web")
        with pytest.raises(InconsistentResourceGranularityError):
            model.add_service_binding("main", "web", capacity=["hosts"])

    def test_step_totals_must_fit_task_level(self, model):
        model.add_workload(
            ["MANAGED_ELASTIC"],
            identifier="web",
            cpu=512,
            memory=4096,
            steps=[_step("web", 512, 1024), _step("sidecar", 256, 512)],
        )
        with pytest.raises(InconsistentResourceGranularityError) as exc_info:
            model.add_service_binding("main", "web", capacity=["managed"])
        assert exc_info.value.details == {"resource": "cpu", "task_level": 512, "step_total": 768}

    def test_mixed_modes_use_fixed_host_rules(self, model):
        # FIXED_HOST in the effective modes allows per-step-only resources
        model.add_workload(
            "FIXED_HOST|MANAGED_ELASTIC",
            identifier="web",
            steps=[_step("web", 512, 1024)],
        )
        model.add_service_binding(
            "main", "web", capacity=[("hosts", 1), ("managed", 1)], identifier="web"
        )
        assert model.validate().ok


class TestServerlessSizes:
    def test_unsupported_size_rejected(self, model):
        model.add_workload(["SERVERLESS"], identifier="httpd", cpu=1024, memory=9500)
        with pytest.raises(UnsupportedResourceSizeError, match="between 2048 and 8192"):
            model.add_service_binding("main", "httpd", capacity=["serverless"])

    def test_unknown_cpu_rejected(self, model):
        model.add_workload(["SERVERLESS"], identifier="odd", cpu=768, memory=2048)
        with pytest.raises(UnsupportedResourceSizeError, match="cpu must be one of"):
            model.add_service_binding("main", "odd", capacity=["serverless"])

    def test_supported_size_accepted(self, model):
        model.add_workload(["SERVERLESS"], identifier="nginx", cpu=1024, memory=5120)
        model.add_service_binding("main", "nginx", capacity=["serverless"], identifier="nginx")
        assert model.validate().ok

    def test_same_workload_fits_managed_capacity(self, model):
        model.add_workload(
            "MANAGED_ELASTIC|SERVERLESS", identifier="httpd", cpu=1024, memory=9500
        )
        model.add_service_binding("main", "httpd", capacity=["managed"], identifier="httpd")
        assert model.validate().ok


class TestBindingDeclaration:
    def test_cluster_mismatch(self, model):
        model.add_cluster("other")
        model.add_capacity_offering("other", ["FIXED_HOST"], identifier="elsewhere")
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)

        with pytest.raises(ClusterMismatchError) as exc_info:
            model.add_service_binding("main", "web", capacity=["elsewhere"])
        assert exc_info.value.details == {"binding_cluster": "main", "offering_cluster": "other"}

    def test_cluster_mismatch_still_checks_capabilities(self, model):
        model.add_cluster("other")
        model.add_capacity_offering("other", ["FIXED_HOST"], identifier="elsewhere")
        model.add_workload(["MANAGED_ELASTIC"], identifier="web", cpu=256, memory=512)
        model.add_service_binding(
            "main", "web", capacity=["elsewhere"], identifier="web", fail_fast=False
        )

        kinds = [issue.kind for issue in model.validate().issues]
        assert kinds == [
            ErrorKind.CLUSTER_MISMATCH,
            ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE,
        ]

    def test_empty_offering_capabilities(self, model):
        model.add_capacity_offering("main", [], identifier="empty")
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        model.add_service_binding(
            "main", "web", capacity=["empty"], identifier="web", fail_fast=False
        )

        issues = model.validate().issues
        assert [issue.kind for issue in issues] == [
            ErrorKind.INVALID_DECLARATION,
            ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE,
        ]
        assert issues[0].subjects == ("offering/empty", "service/web")

    def test_missing_workload(self, model):
        with pytest.raises(DanglingReferenceError, match="undeclared workload 'ghost'"):
            model.add_service_binding("main", "ghost", capacity=["hosts"])

    def test_missing_offering(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        with pytest.raises(DanglingReferenceError, match="undeclared offering 'ghost'"):
            model.add_service_binding("main", "web", capacity=["ghost"])

    def test_all_zero_weights_rejected(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        with pytest.raises(InvalidDeclarationError, match="positive weight"):
            model.add_service_binding("main", "web", capacity=[("hosts", 0)])

    def test_single_base_only(self, model):
        model.add_workload(
            "FIXED_HOST|MANAGED_ELASTIC", identifier="web", cpu=256, memory=512
        )
        with pytest.raises(InvalidDeclarationError, match="only one capacity offering"):
            model.add_service_binding(
                "main",
                "web",
                capacity=[CapacityWeight("hosts", 1, 1), CapacityWeight("managed", 1, 2)],
            )

    def test_negative_desired_count_rejected(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        with pytest.raises(InvalidDeclarationError, match="desired count"):
            model.add_service_binding("main", "web", capacity=["hosts"], desired_count=-1)

    def test_duplicate_offering_rejected(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        with pytest.raises(InvalidDeclarationError, match="more than once"):
            model.add_service_binding("main", "web", capacity=["hosts", "hosts"])


class TestDefaultStrategy:
    @pytest.fixture
    def defaults(self):
        m = DeploymentModel()
        m.add_cluster("main")
        m.add_capacity_offering("main", ["MANAGED_ELASTIC"], identifier="managed", default_weight=1)
        m.add_workload(["MANAGED_ELASTIC"], identifier="web", cpu=1024, memory=2048)
        return m

    def test_binding_without_capacity_uses_cluster_default(self, defaults):
        handle = defaults.add_service_binding("main", "web", identifier="web")
        managed = NodeHandle(EntityKind.CAPACITY_OFFERING, "managed")
        assert defaults.graph.dependencies(handle)[managed] is EdgeKind.ORDERING

    def test_no_default_strategy_means_no_capacity(self, model):
        model.add_workload(["FIXED_HOST"], identifier="web", cpu=256, memory=512)
        with pytest.raises(MissingCapacitySourceError):
            model.add_service_binding("main", "web")

    def test_incompatible_default_offering_rejected_on_attach(self, defaults):
        defaults.add_service_binding("main", "web", identifier="web")
        with pytest.raises(IncompatibleCapacitySourceError, match="'spot'"):
            defaults.add_capacity_offering(
                "main", ["SERVERLESS"], identifier="spot", default_weight=1
            )
        assert NodeHandle(EntityKind.CAPACITY_OFFERING, "spot") not in defaults.graph

    def test_compatible_default_offering_links_existing_bindings(self, defaults):
        binding = defaults.add_service_binding("main", "web", identifier="web")
        extra = defaults.add_capacity_offering(
            "main", ["MANAGED_ELASTIC", "SERVERLESS"], identifier="burst", default_weight=2
        )
        assert extra in defaults.graph.dependencies(binding)

    def test_non_default_offering_skips_revalidation(self, defaults):
        defaults.add_service_binding("main", "web", identifier="web")
        extra = defaults.add_capacity_offering("main", ["SERVERLESS"], identifier="spot")
        assert defaults.graph.dependents(extra) == {}


class TestValidatorDirect:
    def test_validate_binding_collects_every_issue(self, model):
        model.add_workload(["MANAGED_ELASTIC"], identifier="web")
        binding = ServiceBinding(
            identifier="web",
            cluster="main",
            workload="web",
            capacity=(CapacityWeight("hosts", 1), CapacityWeight("managed", 1)),
            desired_count=-2,
        )
        issues = model.validator.validate_binding(binding)
        assert [issue.kind for issue in issues] == [
            ErrorKind.INVALID_DECLARATION,
            ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE,
            ErrorKind.INCONSISTENT_RESOURCE_GRANULARITY,
        ]

    def test_resolve_capacity_includes_pending_defaults(self, model):
        validator = CompatibilityValidator(model.graph)
        binding = ServiceBinding(identifier="web", cluster="main", workload="web")
        pending = CapacityOffering(
            identifier="pending",
            cluster="main",
            capabilities=CapabilitySet.of("FIXED_HOST"),
            default_weight=3,
        )
        resolved = validator.resolve_capacity(binding, extra_offerings=(pending,))
        assert [(r.pair.offering, r.pair.weight) for r in resolved] == [("pending", 3)]

    def test_effective_modes(self, model):
        model.add_workload("FIXED_HOST|SERVERLESS", identifier="web", cpu=256, memory=512)
        workload = model.graph.get(NodeHandle(EntityKind.WORKLOAD, "web"))
        offerings = model.validator.cluster_offerings("main")
        assert effective_modes(workload, offerings) == CapabilitySet.of("FIXED_HOST", "SERVERLESS")
