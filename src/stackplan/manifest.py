"""
Stack manifest loader.

Builds a DeploymentModel from a YAML stack manifest. Declaration problems
are collected rather than raised so that every problem in a manifest can be
reported at once.

Manifest layout:

    clusters:
      - id: main
    offerings:
      - id: managed
        cluster: main
        capabilities: [MANAGED_INSTANCES]
        default_weight: 1
        instance_requirements: {vcpu_min: 1, memory_min_mib: 2048}
    workloads:
      - id: httpd
        capabilities: [MANAGED_ELASTIC]
        cpu: 1024
        memory: 9500
        steps:
          - name: httpd
            image: public.ecr.aws/docker/library/httpd:2.4
            port: 80
    services:
      - id: web
        cluster: main
        workload: httpd
        capacity:
          - offering: managed
            weight: 1
        after: [api]
    ordering:
      - before: service/api
        after: service/web
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import structlog
import yaml

from stackplan.config import get_settings
from stackplan.core.errors import (
    ConfigurationError,
    DeclarationError,
    ErrorKind,
    PlanNotReadyError,
    ValidationIssue,
)
from stackplan.graph.models import (
    CapacityWeight,
    EntityKind,
    ExecutionStep,
    InstanceRequirements,
    NodeHandle,
    ResourceRequirements,
)
from stackplan.ids import IdentifierSource
from stackplan.model import DeploymentModel, ValidationReport
from stackplan.plan.emitter import RealizationPlan

logger = structlog.get_logger()

SECTIONS = ("clusters", "offerings", "workloads", "services", "ordering")


class ManifestLoadError(ConfigurationError):
    """Manifest file could not be read or has the wrong shape."""


@dataclass
class LoadedManifest:
    """A model built from a manifest plus the declarations it rejected."""

    model: DeploymentModel
    issues: list[ValidationIssue] = field(default_factory=list)
    path: Path | None = None

    def validate(self) -> ValidationReport:
        """Load-time issues followed by the model's own validation issues."""
        report = self.model.validate()
        return ValidationReport(
            issues=[*self.issues, *report.issues],
            revision=report.revision,
            node_count=report.node_count,
        )

    def plan(self) -> RealizationPlan:
        """
        Plan the model; refused while any declaration was rejected.

        Raises:
            PlanNotReadyError: declarations rejected, or model invalid
        """
        if self.issues:
            raise PlanNotReadyError(
                f"{len(self.issues)} declaration(s) in the manifest were rejected",
                issues=self.issues,
            )
        return self.model.plan()


def load_manifest(
    file_path: str | Path,
    id_source: IdentifierSource | None = None,
    default_offering_weight: int | None = None,
) -> LoadedManifest:
    """
    Load a stack manifest from a YAML file.

    Offerings without a weight get ``default_offering_weight``, falling back
    to the configured setting.

    Raises:
        ManifestLoadError: file missing, invalid YAML, or not a mapping
    """
    path = Path(file_path)
    if not path.exists():
        raise ManifestLoadError(f"Manifest file not found: {file_path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestLoadError(f"Invalid YAML in {file_path}: {e}") from e

    loaded = build_model(
        data,
        id_source=id_source,
        default_offering_weight=_default(
            default_offering_weight, get_settings().default_offering_weight
        ),
        source=str(path),
    )
    loaded.path = path
    return loaded


def build_model(
    data: Any,
    id_source: IdentifierSource | None = None,
    default_offering_weight: int = 1,
    source: str = "<manifest>",
) -> LoadedManifest:
    """Build a model from already-parsed manifest data."""
    if not isinstance(data, dict):
        raise ManifestLoadError(f"Expected YAML object in {source}")

    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ManifestLoadError(
            f"Unknown manifest section(s) in {source}: {', '.join(unknown)}. "
            f"Must be one of: {', '.join(SECTIONS)}"
        )

    model = DeploymentModel(id_source=id_source, default_offering_weight=default_offering_weight)
    loaded = LoadedManifest(model=model)

    for item in _section(data, "clusters", source):
        loaded.issues.extend(_declare("clusters", item, lambda i: _add_cluster(model, i)))
    for item in _section(data, "offerings", source):
        loaded.issues.extend(_declare("offerings", item, lambda i: _add_offering(model, i)))
    for item in _section(data, "workloads", source):
        loaded.issues.extend(_declare("workloads", item, lambda i: _add_workload(model, i)))

    declared_services: list[tuple[NodeHandle, dict[str, Any]]] = []
    for item in _section(data, "services", source):

        def add_service(i: dict[str, Any]) -> None:
            declared_services.append((_add_service(model, i), i))

        loaded.issues.extend(_declare("services", item, add_service))

    # Service-level ``after`` lists may reference services declared later
    for handle, item in declared_services:
        for before in item.get("after") or []:
            loaded.issues.extend(_declare(
                "services",
                item,
                lambda _i, b=before: model.add_ordering(
                    NodeHandle(EntityKind.SERVICE_BINDING, str(b)), handle
                ),
            ))

    for item in _section(data, "ordering", source):
        loaded.issues.extend(_declare(
            "ordering",
            item,
            lambda i: model.add_ordering(_ref(i["before"]), _ref(i["after"])),
        ))

    logger.info(
        "manifest_loaded",
        source=source,
        nodes=len(model.graph),
        rejected=len(loaded.issues),
    )
    return loaded


def _section(data: dict[str, Any], name: str, source: str) -> list[Any]:
    items = data.get(name) or []
    if not isinstance(items, list):
        raise ManifestLoadError(f"Section '{name}' in {source} must be a list")
    return items


def _declare(
    section: str,
    item: Any,
    action: Callable[[dict[str, Any]], Any],
) -> list[ValidationIssue]:
    """Run one declaration, converting failures into issues."""
    label = item.get("id", "?") if isinstance(item, dict) else "?"
    try:
        if not isinstance(item, dict):
            raise TypeError(f"expected a mapping, got {type(item).__name__}")
        action(item)
    except DeclarationError as e:
        logger.debug("declaration_rejected", section=section, id=label, kind=e.kind.value)
        return [e.to_issue()]
    except KeyError as e:
        return [ValidationIssue(
            kind=ErrorKind.INVALID_DECLARATION,
            message=f"{section} entry '{label}' is missing required field {e}",
            subjects=(f"{section}/{label}",),
        )]
    except (TypeError, ValueError) as e:
        return [ValidationIssue(
            kind=ErrorKind.INVALID_DECLARATION,
            message=f"{section} entry '{label}' is invalid: {e}",
            subjects=(f"{section}/{label}",),
        )]
    return []


def _add_cluster(model: DeploymentModel, item: dict[str, Any]) -> NodeHandle:
    return model.add_cluster(identifier=_id(item), metadata=item.get("metadata"))


def _add_offering(model: DeploymentModel, item: dict[str, Any]) -> NodeHandle:
    requirements = None
    raw = item.get("instance_requirements")
    if raw:
        if not isinstance(raw, dict):
            raise TypeError("instance_requirements must be a mapping")
        requirements = InstanceRequirements(
            vcpu_min=_int(raw.get("vcpu_min")),
            memory_min_mib=_int(raw.get("memory_min_mib")),
            cpu_manufacturers=tuple(str(m) for m in raw.get("cpu_manufacturers") or ()),
        )
    return model.add_capacity_offering(
        cluster=str(item["cluster"]),
        capabilities=item["capabilities"],
        identifier=_id(item),
        weight=_int(item.get("weight")),
        default_weight=_int(item.get("default_weight")),
        instance_requirements=requirements,
        fail_fast=False,
    )


def _add_workload(model: DeploymentModel, item: dict[str, Any]) -> NodeHandle:
    steps = tuple(
        ExecutionStep(
            name=str(step["name"]),
            image=step.get("image"),
            resources=ResourceRequirements(
                cpu=_int(step.get("cpu")),
                memory_mib=_int(step.get("memory")),
            ),
            port=_int(step.get("port")),
            essential=bool(step.get("essential", True)),
        )
        for step in item.get("steps") or ()
    )
    return model.add_workload(
        capabilities=item["capabilities"],
        identifier=_id(item),
        cpu=_int(item.get("cpu")),
        memory=_int(item.get("memory")),
        steps=steps,
    )


def _add_service(model: DeploymentModel, item: dict[str, Any]) -> NodeHandle:
    capacity = [
        CapacityWeight(
            offering=str(pair["offering"]),
            weight=_default(_int(pair.get("weight")), 1),
            base=_default(_int(pair.get("base")), 0),
        )
        for pair in item.get("capacity") or ()
    ]
    return model.add_service_binding(
        cluster=str(item["cluster"]),
        workload=str(item["workload"]),
        capacity=capacity,
        identifier=_id(item),
        desired_count=_default(_int(item.get("desired_count")), 1),
        health_check_path=item.get("health_check_path"),
        fail_fast=False,
    )


def _ref(value: str) -> NodeHandle:
    """Node reference; a bare identifier means a service."""
    if "/" in value:
        return NodeHandle.parse(value)
    return NodeHandle(EntityKind.SERVICE_BINDING, value)


def _int(value: Any) -> int | None:
    """Accept ints and numeric strings (``cpu: "1024"``)."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    return int(value)


def _default(value: int | None, fallback: int) -> int:
    return fallback if value is None else value


def _id(item: dict[str, Any]) -> str | None:
    value = item.get("id")
    return None if value is None else str(value)
