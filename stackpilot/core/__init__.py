"""Core deployment engine."""

from .analyzer import ClusterAnalyzer
from .composer import ValueComposer
from .executor import StepExecutor
from .helm import HelmClient, PackageManager
from .intent import KeywordIntentClassifier
from .planner import PlanGenerator

__all__ = [
    "ClusterAnalyzer",
    "ValueComposer",
    "StepExecutor",
    "HelmClient",
    "PackageManager",
    "KeywordIntentClassifier",
    "PlanGenerator",
]
