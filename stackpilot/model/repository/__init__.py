"""Repositories over the DAO layer."""

from .deployment_repository import DeploymentRepository

__all__ = ["DeploymentRepository"]
