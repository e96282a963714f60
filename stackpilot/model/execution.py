"""Execution records for deployment plans.

Step status moves ``pending -> running -> completed | failed`` and the overall
execution moves ``running -> completed | failed``. Every change goes through
``transition()`` so a record can never move backwards or leave a terminal
state.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..errors import InvalidTransitionError
from .plan import DeploymentPlan, StepStatus, new_identifier


class ExecutionStatus(str, Enum):
    """Lifecycle of a whole plan execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


STEP_TRANSITIONS: Dict[StepStatus, FrozenSet[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.RUNNING}),
    StepStatus.RUNNING: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
}

EXECUTION_TRANSITIONS: Dict[ExecutionStatus, FrozenSet[ExecutionStatus]] = {
    ExecutionStatus.RUNNING: frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
}


class DeploymentStepExecution(BaseModel):
    """Runtime state of one plan step."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StepStatus.COMPLETED, StepStatus.FAILED)

    def transition(self, new_status: StepStatus) -> None:
        """Move to ``new_status`` or raise InvalidTransitionError."""
        if new_status not in STEP_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Step {self.step_id} cannot move from {self.status.value} to {new_status.value}",
                details={"step_id": self.step_id},
            )
        self.status = new_status
        if new_status == StepStatus.RUNNING:
            self.start_time = datetime.now()
        else:
            self.end_time = datetime.now()

    def log(self, message: str) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(f"Step {self.step_id} is finished; logs are closed")
        self.logs.append(message)


class DeploymentExecution(BaseModel):
    """A run of a plan against one cluster."""

    id: str = Field(default_factory=lambda: new_identifier("exec"))
    plan_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    steps: List[DeploymentStepExecution] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    failed_step_id: Optional[str] = None

    @classmethod
    def for_plan(cls, plan: DeploymentPlan) -> "DeploymentExecution":
        """Create a running execution with every step pending."""
        return cls(
            plan_id=plan.id,
            steps=[DeploymentStepExecution(step_id=step.id) for step in plan.steps],
            logs=[f"Starting deployment of {plan.name}"],
        )

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionStatus.RUNNING

    @property
    def completed_steps(self) -> List[str]:
        return [s.step_id for s in self.steps if s.status == StepStatus.COMPLETED]

    @property
    def pending_steps(self) -> List[str]:
        """Steps that never ran."""
        return [s.step_id for s in self.steps if s.status == StepStatus.PENDING]

    def get_step(self, step_id: str) -> Optional[DeploymentStepExecution]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def transition(self, new_status: ExecutionStatus) -> None:
        if new_status not in EXECUTION_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Execution {self.id} cannot move from {self.status.value} to {new_status.value}",
                details={"execution_id": self.id},
            )
        self.status = new_status
        self.end_time = datetime.now()

    def log(self, message: str) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(f"Execution {self.id} is finished; logs are closed")
        self.logs.append(message)

    def fail(self, error: str, step_id: Optional[str] = None) -> None:
        """Record the terminal error and move to failed."""
        self.log(error)
        self.error = error
        self.failed_step_id = step_id
        self.transition(ExecutionStatus.FAILED)
