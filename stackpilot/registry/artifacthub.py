"""Artifact Hub package registry client."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from ..errors import RegistryError, RegistryTimeoutError, RenderError
from ..model.plan import PackageDescriptor
from ..model.values import ValueMap, load_values
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Artifact Hub repository kinds
HELM_KIND = 0


class PackageRegistry(ABC):
    """Source of installable packages."""

    @abstractmethod
    def search(
        self, query: str, kind: int = HELM_KIND, limit: int = 20, timeout: Optional[float] = None
    ) -> List[PackageDescriptor]:
        """Return packages matching ``query`` in relevance order."""

    @abstractmethod
    def get_details(
        self, package_id: str, version: str, timeout: Optional[float] = None
    ) -> ValueMap:
        """Return the default values document of one package version."""


class ArtifactHubClient(PackageRegistry):
    """Client for the Artifact Hub HTTP API."""

    def __init__(self, base_url: str = "https://artifacthub.io", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None):
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(url, params=params, timeout=timeout or self.timeout)
        except requests.Timeout as e:
            raise RegistryTimeoutError(f"Registry request timed out: {url}") from e
        except requests.RequestException as e:
            raise RegistryError(f"Registry request failed: {e}") from e

    def search(
        self, query: str, kind: int = HELM_KIND, limit: int = 20, timeout: Optional[float] = None
    ) -> List[PackageDescriptor]:
        """Search packages; results keep the registry's relevance order."""
        logger.info(f"Searching registry for '{query}'")
        response = self._get(
            "/api/v1/packages/search",
            params={"ts_query_web": query, "kind": kind, "limit": limit, "offset": 0},
            timeout=timeout,
        )

        if response.status_code != 200:
            raise RegistryError(
                f"Search failed with status: {response.status_code}",
                details={"query": query, "body": response.text[:200]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(f"Failed to parse search response: {e}") from e

        packages = [self._parse_package(item) for item in data.get("packages") or []]
        logger.info(f"Registry returned {len(packages)} packages for '{query}'")
        return packages

    def get_details(
        self, package_id: str, version: str, timeout: Optional[float] = None
    ) -> ValueMap:
        """Fetch the default values of a package version.

        Packages without a values document read as empty defaults.
        """
        response = self._get(f"/api/v1/packages/{package_id}/{version}/values", timeout=timeout)

        if response.status_code == 404:
            logger.debug(f"No default values for package {package_id}@{version}")
            return {}
        if response.status_code != 200:
            raise RegistryError(
                f"Failed to get package values with status: {response.status_code}",
                details={"package_id": package_id, "version": version},
            )

        try:
            return load_values(response.text)
        except RenderError as e:
            raise RegistryError(f"Package {package_id} has unreadable values: {e.message}") from e

    @staticmethod
    def _parse_package(item: Dict[str, Any]) -> PackageDescriptor:
        repository = item.get("repository") or {}
        return PackageDescriptor(
            package_id=item.get("package_id", ""),
            name=item.get("name", ""),
            repository=repository.get("name", ""),
            repository_url=repository.get("url", ""),
            version=item.get("version", ""),
            description=item.get("description", "") or "",
        )
