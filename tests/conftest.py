"""Root test configuration."""

import logging

import pytest
import structlog

from stackplan.model import DeploymentModel


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def model():
    """Model with one cluster and one offering per launch mode."""
    m = DeploymentModel()
    m.add_cluster("main")
    m.add_capacity_offering("main", ["FIXED_HOST"], identifier="hosts")
    m.add_capacity_offering("main", ["MANAGED_ELASTIC"], identifier="managed")
    m.add_capacity_offering("main", ["SERVERLESS"], identifier="serverless")
    return m


MANAGED_INSTANCES_MANIFEST = """
clusters:
  - id: main
offerings:
  - id: managed
    cluster: main
    capabilities: [MANAGED_INSTANCES]
    default_weight: 1
    instance_requirements:
      vcpu_min: 1
      memory_min_mib: 2048
      cpu_manufacturers: [amd]
workloads:
  - id: httpd
    capabilities: [MANAGED_ELASTIC]
    cpu: "1024"
    memory: "9500"
    steps:
      - name: httpd
        image: public.ecr.aws/docker/library/httpd:2.4
        port: 80
  - id: nginx
    capabilities: [MANAGED_ELASTIC]
    cpu: "1024"
    memory: "5500"
    steps:
      - name: nginx
        image: public.ecr.aws/docker/library/nginx:latest
        port: 80
services:
  - id: service-1
    cluster: main
    workload: httpd
    health_check_path: /
    capacity:
      - offering: managed
        weight: 1
  - id: service-2
    cluster: main
    workload: nginx
    health_check_path: /
    capacity:
      - offering: managed
        weight: 1
    after: [service-1]
"""


@pytest.fixture
def manifest_file(tmp_path):
    """Valid managed-instances stack manifest."""
    path = tmp_path / "stack.yaml"
    path.write_text(MANAGED_INSTANCES_MANIFEST)
    return path
