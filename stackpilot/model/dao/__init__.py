"""Data Access Objects for stackpilot tables."""

from .execution_dao import ExecutionDAO
from .plan_dao import PlanDAO

__all__ = ["PlanDAO", "ExecutionDAO"]
