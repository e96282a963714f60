"""Test configuration and fixtures."""

import pytest
from unittest.mock import Mock
from typing import Any, Dict, List, Optional

pytest_plugins = ("pytest_asyncio",)

from stackpilot.core.helm import PackageManager
from stackpilot.database.connection import DatabaseConnection
from stackpilot.model.cluster import (
    ClusterAnalysis,
    ClusterCapabilities,
    ClusterResources,
    SecurityInfo,
)
from stackpilot.model.credentials import ClusterCredentials
from stackpilot.model.plan import DeploymentPlan, DeploymentStep, PackageDescriptor
from stackpilot.registry.artifacthub import HELM_KIND, PackageRegistry


class FakePackageManager(PackageManager):
    """Package manager that records calls instead of running helm.

    ``results`` maps a step id to ``(output, exit_status)`` or to an exception
    raised from ``install``.
    """

    def __init__(self, results=None, bootstrap_error=None, source_error=None, available=True):
        self.results: Dict[str, Any] = dict(results or {})
        self.bootstrap_error = bootstrap_error
        self.source_error = source_error
        self.available = available
        self.calls: List[tuple] = []
        self.values_paths = []
        self.values_seen: List[str] = []

    def is_available(self) -> bool:
        return self.available

    def ensure_installed(self) -> None:
        self.calls.append(("ensure_installed",))
        if self.bootstrap_error is not None:
            raise self.bootstrap_error

    def add_source(self, name: str, url: str) -> None:
        self.calls.append(("add_source", name, url))
        if self.source_error is not None:
            raise self.source_error

    def install(self, step, values_path, credentials, timeout):
        self.calls.append(("install", step.id))
        self.values_paths.append(values_path)
        self.values_seen.append(values_path.read_text())
        result = self.results.get(step.id, ("Release installed", 0))
        if isinstance(result, BaseException):
            raise result
        return result

    def run_command(self, argv, credentials, timeout):
        self.calls.append(("run_command", argv))
        return self.results.get("command", ("ok", 0))


class FakeRegistry(PackageRegistry):
    """In-memory registry returning a fixed result list."""

    def __init__(self, packages=None, details=None, error=None):
        self.packages: List[PackageDescriptor] = list(packages or [])
        self.details: Dict[str, Dict[str, Any]] = dict(details or {})
        self.error = error
        self.search_calls: List[Dict[str, Any]] = []
        self.detail_calls: List[tuple] = []

    def search(self, query, kind=HELM_KIND, limit=20, timeout=None):
        self.search_calls.append({"query": query, "kind": kind, "limit": limit, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return list(self.packages[:limit])

    def get_details(self, package_id, version, timeout=None):
        self.detail_calls.append((package_id, version, timeout))
        return self.details.get(package_id, {})


def make_package(name: str, index: int = 1, **overrides) -> PackageDescriptor:
    fields = {
        "package_id": f"pkg-{index}",
        "name": name,
        "repository": f"repo{index}",
        "repository_url": f"https://charts{index}.example.com",
        "version": f"1.{index}.0",
        "description": f"{name} chart",
    }
    fields.update(overrides)
    return PackageDescriptor(**fields)


def make_node(
    name: str,
    cpu_capacity: str = "4",
    cpu_allocatable: str = "3",
    memory_capacity: str = "16Gi",
    memory_allocatable: str = "15Gi",
    labels: Optional[Dict[str, str]] = None,
    conditions: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    return {
        "metadata": {"name": name, "labels": labels or {}, "annotations": {}},
        "status": {
            "capacity": {
                "cpu": cpu_capacity,
                "memory": memory_capacity,
                "ephemeral-storage": "100Gi",
            },
            "allocatable": {
                "cpu": cpu_allocatable,
                "memory": memory_allocatable,
                "ephemeral-storage": "90Gi",
            },
            "conditions": conditions
            if conditions is not None
            else [{"type": "MemoryPressure"}, {"type": "Ready"}],
        },
    }


@pytest.fixture
def fake_package_manager():
    return FakePackageManager()


@pytest.fixture
def sample_packages():
    """Five search results in registry relevance order."""
    names = ["kube-prometheus-stack", "prometheus", "prometheus-adapter", "grafana", "loki"]
    return [make_package(name, index) for index, name in enumerate(names, start=1)]


@pytest.fixture
def fake_registry(sample_packages):
    return FakeRegistry(sample_packages)


@pytest.fixture
def credentials():
    return ClusterCredentials(context="test-cluster")


@pytest.fixture
def sample_analysis():
    """Snapshot of a healthy three node cluster."""
    return ClusterAnalysis(
        cluster_name="test-cluster",
        version="v1.29.2",
        resources=ClusterResources(
            total_cpu="12",
            total_memory="48Gi",
            total_storage="300Gi",
            available_cpu="9",
            available_memory="45Gi",
            available_storage="270Gi",
        ),
        capabilities=ClusterCapabilities(
            helm_installed=True,
            ingress_available=True,
            persistent_volume=True,
            rbac_enabled=True,
            network_policy=True,
        ),
        storage_classes=["standard", "fast"],
        network_policy="supported",
        security=SecurityInfo(rbac_enabled=True, network_policy=True, secrets_enabled=True),
    )


@pytest.fixture
def sample_plan():
    """A three step plan bound to packages."""
    steps = [
        DeploymentStep(
            id=f"step-{index}",
            name=f"Deploy {name}",
            description=f"Deploy {name} chart from repo{index} repository",
            package=make_package(name, index),
            values={"replicaCount": index, "securityContext": {"runAsNonRoot": True}},
        )
        for index, name in enumerate(["prometheus", "grafana", "loki"], start=1)
    ]
    return DeploymentPlan(
        id="plan-test",
        name="Deploy monitoring Stack",
        description="Deployment plan for monitoring stack",
        request_text="monitoring",
        steps=steps,
    )


@pytest.fixture
def mock_db_connection():
    """Mock database connection for unit tests."""
    mock_conn = Mock(spec=DatabaseConnection)

    mock_conn.execute = Mock(return_value=1)
    mock_conn.fetch_one = Mock(return_value=None)
    mock_conn.fetch_all = Mock(return_value=[])
    mock_conn.test_connection = Mock(return_value=True)
    mock_conn.get_database_stats = Mock(return_value={})
    mock_conn.get_database_info = Mock(return_value={"url": "sqlite:///test.db"})
    mock_conn.close = Mock()

    return mock_conn


@pytest.fixture
def package_factory():
    return make_package


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def registry_factory():
    return FakeRegistry


@pytest.fixture
def package_manager_factory():
    return FakePackageManager
