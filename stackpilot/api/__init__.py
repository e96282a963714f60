"""API layer for stackpilot business logic."""

from .deployment_service import DeploymentService

__all__ = ["DeploymentService"]
