"""Repository for stored plans and executions."""

from typing import List, Optional

from ..dao.execution_dao import ExecutionDAO
from ..dao.plan_dao import PlanDAO
from ..execution import DeploymentExecution
from ..plan import DeploymentPlan
from ...database.connection import DatabaseConnection
from ...utils.logger import get_logger

logger = get_logger(__name__)


class DeploymentRepository:
    """Stores plans and executions as JSON documents."""

    def __init__(self, db_connection: DatabaseConnection):
        self.plan_dao = PlanDAO(db_connection)
        self.execution_dao = ExecutionDAO(db_connection)

    def save_plan(self, plan: DeploymentPlan) -> None:
        logger.debug(f"Saving plan {plan.id}")
        self.plan_dao.save_plan(
            plan_id=plan.id,
            name=plan.name,
            request_text=plan.request_text,
            step_count=len(plan.steps),
            created_at=plan.created_at.isoformat(),
            plan_data=plan.model_dump_json(),
        )

    def get_plan(self, plan_id: str) -> Optional[DeploymentPlan]:
        row = self.plan_dao.find_by_id(plan_id)
        if row is None:
            return None
        return DeploymentPlan.model_validate_json(row["plan_data"])

    def list_plans(self, limit: Optional[int] = 20) -> List[DeploymentPlan]:
        return [
            DeploymentPlan.model_validate_json(row["plan_data"])
            for row in self.plan_dao.get_recent(limit)
        ]

    def save_execution(self, execution: DeploymentExecution) -> None:
        logger.debug(f"Saving execution {execution.id} ({execution.status.value})")
        self.execution_dao.save_execution(
            execution_id=execution.id,
            plan_id=execution.plan_id,
            status=execution.status.value,
            start_time=execution.start_time.isoformat(),
            end_time=execution.end_time.isoformat() if execution.end_time else None,
            error=execution.error,
            execution_data=execution.model_dump_json(),
        )

    def get_execution(self, execution_id: str) -> Optional[DeploymentExecution]:
        row = self.execution_dao.find_by_id(execution_id)
        if row is None:
            return None
        return DeploymentExecution.model_validate_json(row["execution_data"])

    def list_executions(
        self, plan_id: Optional[str] = None, limit: Optional[int] = 20
    ) -> List[DeploymentExecution]:
        if plan_id:
            rows = self.execution_dao.find_by_plan_id(plan_id, limit)
        else:
            rows = self.execution_dao.get_recent(limit)
        return [DeploymentExecution.model_validate_json(row["execution_data"]) for row in rows]
