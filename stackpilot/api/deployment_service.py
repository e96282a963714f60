"""Deployment API service: the operations exposed to callers."""

from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..core.analyzer import ClusterAnalyzer
from ..core.executor import StepExecutor
from ..core.helm import HelmClient, PackageManager
from ..core.intent import KeywordIntentClassifier
from ..core.planner import PlanGenerator
from ..database.connection import DatabaseConnection
from ..errors import ExecutionNotFoundError, PlanNotFoundError
from ..model.cluster import ClusterAnalysis
from ..model.credentials import ClusterCredentials
from ..model.execution import DeploymentExecution
from ..model.plan import DeploymentPlan
from ..model.repository.deployment_repository import DeploymentRepository
from ..registry.artifacthub import ArtifactHubClient, PackageRegistry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DeploymentService:
    """High-level service for planning and executing deployments."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[PackageRegistry] = None,
        package_manager: Optional[PackageManager] = None,
        repository: Optional[DeploymentRepository] = None,
        analyzer: Optional[ClusterAnalyzer] = None,
        classifier: Optional[KeywordIntentClassifier] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or ArtifactHubClient(
            self.settings.registry_url, timeout=self.settings.registry_timeout
        )
        self.package_manager = package_manager or HelmClient(
            version=self.settings.helm_version,
            bin_dir=self.settings.helm_bin_dir,
            namespace=self.settings.release_namespace,
        )
        self.repository = repository or DeploymentRepository(
            DatabaseConnection(self.settings.database_url)
        )
        self.analyzer = analyzer or ClusterAnalyzer(
            package_manager=self.package_manager, max_workers=self.settings.probe_workers
        )
        self.classifier = classifier or KeywordIntentClassifier()
        self.planner = PlanGenerator(
            self.registry,
            max_candidates=self.settings.max_candidates,
            fetch_defaults=self.settings.fetch_defaults,
            namespace=self.settings.release_namespace,
        )
        self.executor = StepExecutor(self.package_manager, step_timeout=self.settings.step_timeout)

    def analyze_cluster(self, credentials: ClusterCredentials) -> ClusterAnalysis:
        return self.analyzer.analyze(credentials)

    def classify_request(self, request_text: str) -> Dict[str, Any]:
        """Report whether a request asks for a deployment, with an expanded description."""
        return {
            "is_deployment": self.classifier.is_deployment_request(request_text),
            "description": self.classifier.explain(request_text),
        }

    def create_plan(
        self,
        request_text: str,
        credentials: Optional[ClusterCredentials] = None,
        requirements: Optional[Dict[str, Any]] = None,
    ) -> DeploymentPlan:
        """Create and store a plan for ``request_text``.

        When credentials are given the cluster is analyzed first and the
        snapshot shapes the values of every step.
        """
        analysis = self.analyze_cluster(credentials) if credentials else None

        plan = self.planner.create_plan(
            request_text,
            analysis=analysis,
            requirements=requirements,
            timeout=self.settings.registry_timeout,
        )
        self.repository.save_plan(plan)
        return plan

    def execute_plan(self, plan_id: str, credentials: ClusterCredentials, on_update=None) -> DeploymentExecution:
        """Execute a stored plan, persisting the record after every state change."""
        plan = self.get_plan(plan_id)

        def _persist(execution: DeploymentExecution) -> None:
            self.repository.save_execution(execution)
            if on_update is not None:
                on_update(execution)

        execution = self.executor.execute(plan, credentials, on_update=_persist)
        logger.info(f"Execution {execution.id} finished with status {execution.status.value}")
        return execution

    def get_plan(self, plan_id: str) -> DeploymentPlan:
        plan = self.repository.get_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def get_execution(self, execution_id: str) -> DeploymentExecution:
        execution = self.repository.get_execution(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    def list_plans(self, limit: int = 20) -> List[DeploymentPlan]:
        return self.repository.list_plans(limit)

    def list_executions(self, plan_id: Optional[str] = None, limit: int = 20) -> List[DeploymentExecution]:
        return self.repository.list_executions(plan_id, limit)
