"""Keyword classification of free-text requests."""

from typing import List

DEPLOYMENT_KEYWORDS = [
    "install",
    "deploy",
    "setup",
    "create",
    "add",
    "enable",
    "grafana",
    "prometheus",
    "elk",
    "elasticsearch",
    "kibana",
    "monitoring",
    "logging",
    "observability",
]

# keyword -> stack description prepended by explain()
STACK_HINTS = {
    "grafana": "Deploy Grafana monitoring stack with Prometheus, AlertManager, and Node Exporter.",
    "elk": "Deploy ELK (Elasticsearch, Logstash, Kibana) stack for centralized logging.",
    "elasticsearch": "Deploy ELK (Elasticsearch, Logstash, Kibana) stack for centralized logging.",
    "prometheus": "Deploy Prometheus monitoring stack with Grafana for visualization.",
}


class KeywordIntentClassifier:
    """Decides whether a request asks for a deployment."""

    def __init__(self, keywords: List[str] = None):
        self.keywords = keywords or DEPLOYMENT_KEYWORDS

    def is_deployment_request(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)

    def explain(self, text: str) -> str:
        """Expand a request with descriptions of the stacks it mentions."""
        lowered = text.lower()
        hints: List[str] = []
        for keyword, hint in STACK_HINTS.items():
            if keyword in lowered and hint not in hints:
                hints.append(hint)
        return " ".join(hints + [text.strip()])
