"""Cluster capability analyzer."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import ProbeError
from ..k8s.client import K8sClient
from ..model.cluster import (
    ClusterAnalysis,
    ClusterCapabilities,
    ClusterResources,
    NodeInfo,
    ResourceInfo,
    SecurityInfo,
)
from ..model.credentials import ClusterCredentials
from ..utils.logger import get_logger
from ..utils.quantity import format_quantity, parse_quantity
from .helm import PackageManager

logger = get_logger(__name__)

DEFAULT_CLUSTER_NAME = "analyzed-cluster"

ClientFactory = Callable[[ClusterCredentials, Optional[Path]], K8sClient]

# Probe name -> call against the client. Every probe is read-only and
# independent of the others.
PROBES: Dict[str, Callable[[K8sClient], List[Dict[str, Any]]]] = {
    "nodes": lambda c: c.list_items("nodes"),
    "storageclasses": lambda c: c.list_items("storageclasses"),
    "namespaces": lambda c: c.list_items("namespaces"),
    "system_secrets": lambda c: c.list_items("secrets", namespace="kube-system"),
    "ingresses": lambda c: c.list_items("ingresses", all_namespaces=True),
    "services": lambda c: c.list_items("services", all_namespaces=True),
    "persistentvolumes": lambda c: c.list_items("persistentvolumes"),
    "clusterroles": lambda c: c.list_items("clusterroles"),
    "networkpolicies": lambda c: c.list_items("networkpolicies", all_namespaces=True),
    "podsecuritypolicies": lambda c: c.list_items("podsecuritypolicies"),
    "secrets": lambda c: c.list_items("secrets", all_namespaces=True),
}

NODE_RESOURCES = {
    "cpu": "cpu",
    "memory": "memory",
    "storage": "ephemeral-storage",
}


def default_client_factory(
    credentials: ClusterCredentials, kubeconfig: Optional[Path]
) -> K8sClient:
    return K8sClient(context=credentials.context, kubeconfig=kubeconfig)


def analyze_resource(capacity: Optional[str], allocatable: Optional[str], resource: str) -> ResourceInfo:
    """Build ResourceInfo for one resource of one node.

    ``used`` is capacity minus allocatable, never negative. ``percentage`` is
    the allocatable share of capacity and is 0 when capacity is 0.
    """
    if capacity is None or allocatable is None:
        return ResourceInfo()

    try:
        cap = parse_quantity(capacity)
        alloc = parse_quantity(allocatable)
    except ValueError as e:
        logger.warning(f"Ignoring unparseable {resource} quantity: {e}")
        return ResourceInfo()

    used = cap - alloc
    if used < 0:
        used = Decimal(0)

    percentage = int(alloc * 100 / cap) if cap > 0 else 0

    return ResourceInfo(
        capacity=str(capacity),
        allocatable=str(allocatable),
        used=format_quantity(used, resource),
        percentage=percentage,
    )


def node_role(labels: Dict[str, str]) -> str:
    if "node-role.kubernetes.io/control-plane" in labels:
        return "control-plane"
    if "node-role.kubernetes.io/master" in labels:
        return "master"
    return "worker"


class ClusterAnalyzer:
    """Produces a ClusterAnalysis from a live cluster."""

    def __init__(
        self,
        client_factory: ClientFactory = default_client_factory,
        package_manager: Optional[PackageManager] = None,
        max_workers: int = 8,
    ):
        self.client_factory = client_factory
        self.package_manager = package_manager
        self.max_workers = max_workers

    def analyze(self, credentials: ClusterCredentials) -> ClusterAnalysis:
        """Analyze the cluster behind ``credentials``.

        Raises ConnectivityError when the control plane cannot be reached.
        Individual probe failures only clear the affected flags.
        """
        with credentials.materialize() as kubeconfig:
            client = self.client_factory(credentials, kubeconfig)

            version_data = client.get_version()
            version = version_data["serverVersion"].get("gitVersion", "unknown")
            logger.info(f"Connected to cluster running {version}")

            results = self._run_probes(client)

        nodes = results["nodes"] or []
        capabilities = self._analyze_capabilities(results)

        analysis = ClusterAnalysis(
            cluster_name=credentials.context or DEFAULT_CLUSTER_NAME,
            version=version,
            nodes=self._analyze_nodes(nodes),
            resources=self._analyze_cluster_resources(nodes),
            capabilities=capabilities,
            storage_classes=[
                sc.get("metadata", {}).get("name", "") for sc in results["storageclasses"] or []
            ],
            network_policy="supported" if results["networkpolicies"] is not None else "not-supported",
            security=self._analyze_security(results),
        )

        logger.info(
            f"Analysis complete: {analysis.node_count} nodes, "
            f"{len(analysis.storage_classes)} storage classes"
        )
        return analysis

    def _run_probes(self, client: K8sClient) -> Dict[str, Optional[List[Dict[str, Any]]]]:
        """Run every probe concurrently. A failed probe maps to None."""
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {name: pool.submit(probe, client) for name, probe in PROBES.items()}

            results: Dict[str, Optional[List[Dict[str, Any]]]] = {}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except ProbeError as e:
                    logger.warning(f"Probe '{name}' failed: {e.message}")
                    results[name] = None
        return results

    def _analyze_nodes(self, nodes: List[Dict[str, Any]]) -> List[NodeInfo]:
        node_infos = []

        for node in nodes:
            metadata = node.get("metadata", {})
            status = node.get("status", {})
            capacity = status.get("capacity", {})
            allocatable = status.get("allocatable", {})
            labels = metadata.get("labels") or {}
            conditions = status.get("conditions") or []

            resources = {
                field: analyze_resource(capacity.get(key), allocatable.get(key), field)
                for field, key in NODE_RESOURCES.items()
            }

            node_infos.append(
                NodeInfo(
                    name=metadata.get("name", ""),
                    role=node_role(labels),
                    status=conditions[-1].get("type", "") if conditions else "",
                    labels=labels,
                    annotations=metadata.get("annotations") or {},
                    **resources,
                )
            )

        return node_infos

    def _analyze_cluster_resources(self, nodes: List[Dict[str, Any]]) -> ClusterResources:
        """Sum capacity and allocatable across nodes."""
        totals = {field: Decimal(0) for field in NODE_RESOURCES}
        available = {field: Decimal(0) for field in NODE_RESOURCES}

        for node in nodes:
            status = node.get("status", {})
            capacity = status.get("capacity", {})
            allocatable = status.get("allocatable", {})
            for field, key in NODE_RESOURCES.items():
                try:
                    totals[field] += parse_quantity(capacity.get(key))
                    available[field] += parse_quantity(allocatable.get(key))
                except ValueError as e:
                    logger.warning(f"Skipping {key} on node {node.get('metadata', {}).get('name')}: {e}")

        return ClusterResources(
            total_cpu=format_quantity(totals["cpu"], "cpu"),
            total_memory=format_quantity(totals["memory"], "memory"),
            total_storage=format_quantity(totals["storage"], "storage"),
            available_cpu=format_quantity(available["cpu"], "cpu"),
            available_memory=format_quantity(available["memory"], "memory"),
            available_storage=format_quantity(available["storage"], "storage"),
        )

    def _analyze_capabilities(
        self, results: Dict[str, Optional[List[Dict[str, Any]]]]
    ) -> ClusterCapabilities:
        return ClusterCapabilities(
            helm_installed=self._detect_helm(results),
            ingress_available=bool(results["ingresses"]),
            load_balancer=any(
                svc.get("spec", {}).get("type") == "LoadBalancer"
                for svc in results["services"] or []
            ),
            persistent_volume=bool(results["persistentvolumes"]),
            rbac_enabled=results["clusterroles"] is not None,
            network_policy=results["networkpolicies"] is not None,
        )

    def _detect_helm(self, results: Dict[str, Optional[List[Dict[str, Any]]]]) -> bool:
        namespaces = results["namespaces"]
        has_kube_system = namespaces is None or any(
            ns.get("metadata", {}).get("name") == "kube-system" for ns in namespaces
        )
        if has_kube_system:
            for secret in results["system_secrets"] or []:
                name = secret.get("metadata", {}).get("name", "")
                if "helm" in name or "tiller" in name:
                    return True

        if self.package_manager is not None:
            return self.package_manager.is_available()
        return False

    def _analyze_security(self, results: Dict[str, Optional[List[Dict[str, Any]]]]) -> SecurityInfo:
        return SecurityInfo(
            rbac_enabled=results["clusterroles"] is not None,
            pod_security_policy=results["podsecuritypolicies"] is not None,
            network_policy=results["networkpolicies"] is not None,
            secrets_enabled=results["secrets"] is not None,
        )
