"""DAO for the deployment_plans table."""

from typing import Any, Dict, List, Optional

from .base_dao import BaseDAO


class PlanDAO(BaseDAO):
    """Data Access Object for deployment_plans."""

    def get_table_name(self) -> str:
        return "deployment_plans"

    def save_plan(
        self,
        plan_id: str,
        name: str,
        request_text: str,
        step_count: int,
        created_at: str,
        plan_data: str,
    ) -> int:
        return self.upsert(
            {
                "id": plan_id,
                "name": name,
                "request_text": request_text,
                "step_count": step_count,
                "created_at": created_at,
                "plan_data": plan_data,
            }
        )

    def get_recent(self, limit: Optional[int] = 20) -> List[Dict[str, Any]]:
        return self.find_where(order_by="created_at DESC", limit=limit)
