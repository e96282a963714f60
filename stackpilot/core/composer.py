"""Values composition for deployment steps.

A step's values document is built from four layers, each applied with
``merge`` on top of the previous result:

1. package defaults
2. cluster-derived customization
3. user requirements
4. best-practice defaults

Best practices are applied last, so they win over a user override of the
same key.
"""

from typing import Any, Dict, Optional

from ..errors import RenderError, StackPilotError
from ..model.cluster import ClusterAnalysis
from ..model.plan import PackageDescriptor
from ..model.values import ValueMap, merge
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RESOURCES: ValueMap = {
    "resources": {
        "limits": {"cpu": "500m", "memory": "512Mi"},
        "requests": {"cpu": "100m", "memory": "128Mi"},
    }
}

SECURITY_CONTEXT: ValueMap = {
    "securityContext": {
        "runAsNonRoot": True,
        "runAsUser": 1000,
    }
}

MONITORING_KEYWORDS = ("prometheus", "grafana")

INGRESS_CLASS = "nginx"


def cluster_overrides(analysis: Optional[ClusterAnalysis]) -> ValueMap:
    """Build the cluster-derived layer from a capability snapshot."""
    if analysis is None:
        return {}

    values = merge({}, DEFAULT_RESOURCES)

    if analysis.storage_classes:
        values = merge(values, {"persistence": {"storageClass": analysis.storage_classes[0]}})

    if analysis.capabilities.ingress_available:
        values = merge(
            values,
            {
                "ingress": {
                    "enabled": True,
                    "className": INGRESS_CLASS,
                    "annotations": {"kubernetes.io/ingress.class": INGRESS_CLASS},
                }
            },
        )

    if analysis.security.rbac_enabled:
        values = merge(values, {"rbac": {"create": True}})

    return values


def best_practices(package_name: str) -> ValueMap:
    """Security and operational defaults applied to every package."""
    values = merge({}, SECURITY_CONTEXT)

    lowered = package_name.lower()
    if any(keyword in lowered for keyword in MONITORING_KEYWORDS):
        values = merge(values, {"serviceMonitor": {"enabled": True}})

    return values


class ValueComposer:
    """Composes the final values document for one package."""

    def compose(
        self,
        package: PackageDescriptor,
        analysis: Optional[ClusterAnalysis] = None,
        requirements: Optional[Dict[str, Any]] = None,
    ) -> ValueMap:
        try:
            values = merge({}, package.values)
            values = merge(values, cluster_overrides(analysis))
            values = merge(values, requirements or {})
            values = merge(values, best_practices(package.name))
        except RenderError:
            raise
        except (StackPilotError, TypeError, ValueError) as e:
            raise RenderError(f"Failed to compose values for {package.name}: {e}") from e

        logger.debug(f"Composed {len(values)} top-level keys for {package.name}")
        return values
