"""Deployment plan generation."""

from time import monotonic
from typing import Any, Dict, List, Optional

from ..errors import NoMatchError, RegistryTimeoutError
from ..model.cluster import ClusterAnalysis
from ..model.plan import DeploymentPlan, DeploymentStep, PackageDescriptor, ResourceImpact
from ..registry.artifacthub import HELM_KIND, PackageRegistry
from ..utils.logger import get_logger
from .composer import ValueComposer

logger = get_logger(__name__)

MAX_CANDIDATES = 3

PREREQUISITES = [
    "Kubernetes cluster with sufficient resources",
    "kubectl configured and accessible",
    "Helm 3.x installed (optional, can be installed automatically)",
]

RISKS = [
    "Resource consumption may impact other workloads",
    "Configuration changes may affect existing services",
    "Rollback may be required if issues occur",
]


def _remaining(deadline: Optional[float]) -> Optional[float]:
    """Seconds left before ``deadline``; None means no deadline."""
    if deadline is None:
        return None
    remaining = deadline - monotonic()
    if remaining <= 0:
        raise RegistryTimeoutError("Registry deadline exceeded while building the plan")
    return remaining


class PlanGenerator:
    """Turns a request into an ordered plan of package installs."""

    def __init__(
        self,
        registry: PackageRegistry,
        composer: Optional[ValueComposer] = None,
        max_candidates: int = MAX_CANDIDATES,
        fetch_defaults: bool = True,
        namespace: Optional[str] = None,
    ):
        self.registry = registry
        self.composer = composer or ValueComposer()
        self.max_candidates = max_candidates
        self.fetch_defaults = fetch_defaults
        self.namespace = namespace

    def create_plan(
        self,
        request_text: str,
        analysis: Optional[ClusterAnalysis] = None,
        requirements: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> DeploymentPlan:
        """Create a plan for ``request_text``.

        The top search results become the steps, in registry order. Raises
        NoMatchError when the search is empty; registry and render errors
        propagate and no plan is produced. ``timeout`` bounds the search and
        every defaults fetch together.
        """
        deadline = monotonic() + timeout if timeout is not None else None
        query = request_text.strip()
        candidates = self.registry.search(
            query, kind=HELM_KIND, limit=max(self.max_candidates, 20), timeout=_remaining(deadline)
        )
        if not candidates:
            raise NoMatchError(query)

        selected = candidates[: self.max_candidates]
        logger.info(
            f"Selected {len(selected)} of {len(candidates)} packages for '{query}': "
            f"{', '.join(p.name for p in selected)}"
        )

        steps = [
            self._build_step(index, package, analysis, requirements, deadline)
            for index, package in enumerate(selected, start=1)
        ]

        plan = DeploymentPlan(
            name=f"Deploy {query} Stack",
            description=f"Deployment plan for {query} stack",
            request_text=request_text,
            steps=steps,
            resource_impact=ResourceImpact(),
            prerequisites=list(PREREQUISITES),
            risks=list(RISKS),
        )
        logger.info(f"Created plan {plan.id} with {len(steps)} steps")
        return plan

    def _build_step(
        self,
        index: int,
        package: PackageDescriptor,
        analysis: Optional[ClusterAnalysis],
        requirements: Optional[Dict[str, Any]],
        deadline: Optional[float],
    ) -> DeploymentStep:
        if self.fetch_defaults and package.package_id and package.version:
            defaults = self.registry.get_details(
                package.package_id, package.version, timeout=_remaining(deadline)
            )
            package = package.model_copy(update={"values": defaults})

        values = self.composer.compose(package, analysis, requirements)

        return DeploymentStep(
            id=f"step-{index}",
            name=f"Deploy {package.name}",
            description=f"Deploy {package.name} chart from {package.repository} repository",
            package=package,
            values=values,
            namespace=self.namespace,
        )

    def preview(self, request_text: str, timeout: Optional[float] = None) -> List[PackageDescriptor]:
        """Return the packages a plan for ``request_text`` would use."""
        candidates = self.registry.search(
            request_text.strip(), kind=HELM_KIND, limit=self.max_candidates, timeout=timeout
        )
        return candidates[: self.max_candidates]
