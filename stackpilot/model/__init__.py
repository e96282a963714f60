"""Data models for stackpilot."""

from .cluster import (
    ClusterAnalysis,
    ClusterCapabilities,
    ClusterResources,
    NodeInfo,
    ResourceInfo,
    SecurityInfo,
)
from .credentials import ClusterCredentials
from .execution import DeploymentExecution, DeploymentStepExecution, ExecutionStatus
from .plan import (
    DeploymentPlan,
    DeploymentStep,
    PackageDescriptor,
    ResourceImpact,
    StepStatus,
)

__all__ = [
    "ClusterAnalysis",
    "ClusterCapabilities",
    "ClusterResources",
    "NodeInfo",
    "ResourceInfo",
    "SecurityInfo",
    "ClusterCredentials",
    "DeploymentExecution",
    "DeploymentStepExecution",
    "ExecutionStatus",
    "DeploymentPlan",
    "DeploymentStep",
    "PackageDescriptor",
    "ResourceImpact",
    "StepStatus",
]
