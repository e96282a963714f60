"""DAO for the deployment_executions table."""

from typing import Any, Dict, List, Optional

from .base_dao import BaseDAO


class ExecutionDAO(BaseDAO):
    """Data Access Object for deployment_executions."""

    def get_table_name(self) -> str:
        return "deployment_executions"

    def save_execution(
        self,
        execution_id: str,
        plan_id: str,
        status: str,
        start_time: str,
        end_time: Optional[str],
        error: Optional[str],
        execution_data: str,
    ) -> int:
        return self.upsert(
            {
                "id": execution_id,
                "plan_id": plan_id,
                "status": status,
                "start_time": start_time,
                "end_time": end_time,
                "error": error,
                "execution_data": execution_data,
            }
        )

    def find_by_plan_id(self, plan_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.find_where(
            "plan_id = :plan_id", {"plan_id": plan_id}, order_by="start_time DESC", limit=limit
        )

    def get_recent(self, limit: Optional[int] = 20) -> List[Dict[str, Any]]:
        return self.find_where(order_by="start_time DESC", limit=limit)
