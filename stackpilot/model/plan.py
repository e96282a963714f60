"""Deployment plan models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .values import validate_values


def new_identifier(prefix: str) -> str:
    """Return a collision-resistant identifier such as ``plan-3f2a...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


class StepStatus(str, Enum):
    """Lifecycle of one deployment step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PackageDescriptor(BaseModel):
    """An installable package as reported by the registry."""

    package_id: str = ""
    name: str
    repository: str = ""
    repository_url: str = ""
    version: str = ""
    description: str = ""
    values: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("values")
    @classmethod
    def _check_values(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return validate_values(value)

    @property
    def chart_reference(self) -> str:
        """Return ``<repository>/<name>`` as understood by ``helm install``."""
        if self.repository:
            return f"{self.repository}/{self.name}"
        return self.name


class ResourceImpact(BaseModel):
    """Estimated cost of applying a plan."""

    model_config = ConfigDict(frozen=True)

    cpu: str = "500m"
    memory: str = "1Gi"
    storage: str = "10Gi"
    nodes: int = 1


class DeploymentStep(BaseModel):
    """One unit of work, bound to a package or a raw command."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    package: Optional[PackageDescriptor] = None
    values: Dict[str, Any] = Field(default_factory=dict)
    command: Optional[str] = None
    namespace: Optional[str] = None
    status: StepStatus = StepStatus.PENDING

    @field_validator("values")
    @classmethod
    def _check_values(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return validate_values(value)

    @property
    def release_name(self) -> Optional[str]:
        return self.package.name if self.package else None


class DeploymentPlan(BaseModel):
    """An ordered set of installation steps derived from a request."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_identifier("plan"))
    name: str
    description: str = ""
    request_text: str = ""
    steps: List[DeploymentStep] = Field(default_factory=list)
    resource_impact: ResourceImpact = Field(default_factory=ResourceImpact)
    estimated_time: str = "10-15 minutes"
    prerequisites: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def packages(self) -> List[PackageDescriptor]:
        return [step.package for step in self.steps if step.package is not None]

    def get_step(self, step_id: str) -> Optional[DeploymentStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
