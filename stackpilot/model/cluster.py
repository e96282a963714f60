"""Cluster capability snapshot models."""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class ResourceInfo(BaseModel):
    """Capacity and allocatable amounts of one resource on one node."""

    model_config = ConfigDict(frozen=True)

    capacity: str = "0"
    allocatable: str = "0"
    used: str = "0"
    percentage: int = 0


class NodeInfo(BaseModel):
    """Information about a Kubernetes node."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: str = "worker"
    status: str = ""
    cpu: ResourceInfo = Field(default_factory=ResourceInfo)
    memory: ResourceInfo = Field(default_factory=ResourceInfo)
    storage: ResourceInfo = Field(default_factory=ResourceInfo)
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class ClusterResources(BaseModel):
    """Cluster-wide sums of node capacity (total) and allocatable (available)."""

    model_config = ConfigDict(frozen=True)

    total_cpu: str = "0"
    total_memory: str = "0"
    total_storage: str = "0"
    available_cpu: str = "0"
    available_memory: str = "0"
    available_storage: str = "0"


class ClusterCapabilities(BaseModel):
    """Feature flags discovered on the cluster."""

    model_config = ConfigDict(frozen=True)

    helm_installed: bool = False
    ingress_available: bool = False
    load_balancer: bool = False
    persistent_volume: bool = False
    rbac_enabled: bool = False
    network_policy: bool = False


class SecurityInfo(BaseModel):
    """Security posture flags."""

    model_config = ConfigDict(frozen=True)

    rbac_enabled: bool = False
    pod_security_policy: bool = False
    network_policy: bool = False
    secrets_enabled: bool = False


class ClusterAnalysis(BaseModel):
    """Capability and resource snapshot of one cluster."""

    model_config = ConfigDict(frozen=True)

    cluster_name: str = "analyzed-cluster"
    version: str
    nodes: List[NodeInfo] = Field(default_factory=list)
    resources: ClusterResources = Field(default_factory=ClusterResources)
    capabilities: ClusterCapabilities = Field(default_factory=ClusterCapabilities)
    storage_classes: List[str] = Field(default_factory=list)
    network_policy: str = "not-supported"
    security: SecurityInfo = Field(default_factory=SecurityInfo)
    analyzed_at: datetime = Field(default_factory=datetime.now)

    @property
    def node_count(self) -> int:
        return len(self.nodes)
