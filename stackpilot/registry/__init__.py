"""Package registry clients."""

from .artifacthub import HELM_KIND, ArtifactHubClient, PackageRegistry

__all__ = ["HELM_KIND", "ArtifactHubClient", "PackageRegistry"]
