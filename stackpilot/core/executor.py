"""Sequential plan execution with fail-fast semantics.

Steps run one at a time in plan order. The first failing step stops the run:
later steps stay pending and already completed steps are left installed.
No rollback is attempted.
"""

import os
import shlex
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from ..errors import (
    BootstrapError,
    RenderError,
    SourceRegistrationError,
    StackPilotError,
    StepExecutionError,
)
from ..model.credentials import ClusterCredentials
from ..model.execution import DeploymentExecution, DeploymentStepExecution, ExecutionStatus
from ..model.plan import DeploymentPlan, DeploymentStep, StepStatus
from ..model.values import ValueMap, dump_values
from ..utils.logger import get_logger
from .helm import TIMEOUT_EXIT_STATUS, PackageManager

logger = get_logger(__name__)

ProgressCallback = Callable[[DeploymentExecution], None]

MAX_ERROR_OUTPUT = 2000


@contextmanager
def values_file(values: ValueMap) -> Iterator[Path]:
    """Write a values document to a private temporary file for one install.

    The file is removed on every exit path.
    """
    content = dump_values(values)
    try:
        fd, path = tempfile.mkstemp(prefix="stackpilot-values-", suffix=".yaml")
    except OSError as e:
        raise RenderError(f"Failed to create values file: {e}") from e

    try:
        with os.fdopen(fd, "w") as handle:
            handle.write(content)
        yield Path(path)
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


def _tail(output: str) -> str:
    output = output.strip()
    if len(output) > MAX_ERROR_OUTPUT:
        return "..." + output[-MAX_ERROR_OUTPUT:]
    return output


class StepExecutor:
    """Runs a DeploymentPlan against one cluster."""

    def __init__(self, package_manager: PackageManager, step_timeout: int = 600):
        self.package_manager = package_manager
        self.step_timeout = step_timeout

    def execute(
        self,
        plan: DeploymentPlan,
        credentials: ClusterCredentials,
        on_update: Optional[ProgressCallback] = None,
    ) -> DeploymentExecution:
        """Execute ``plan`` and return the terminal execution record.

        Step failures are recorded on the returned record rather than raised,
        including unexpected errors from the package manager. A
        KeyboardInterrupt marks the running step and the execution failed
        and is then re-raised.
        """
        execution = DeploymentExecution.for_plan(plan)
        notify = on_update or (lambda _: None)
        logger.info(f"Starting execution {execution.id} of plan {plan.id}")
        notify(execution)

        try:
            self.package_manager.ensure_installed()
        except BootstrapError as e:
            logger.error(f"Package manager bootstrap failed: {e.message}")
            execution.fail(f"Package manager unavailable: {e.message}")
            notify(execution)
            return execution
        except KeyboardInterrupt:
            logger.warning(f"Execution {execution.id} cancelled during package manager setup")
            execution.fail("Cancelled during package manager setup")
            notify(execution)
            raise
        except Exception as e:
            logger.exception(f"Package manager bootstrap failed unexpectedly: {e}")
            execution.fail(f"Package manager unavailable: {e}")
            notify(execution)
            return execution

        for index, (step, step_exec) in enumerate(zip(plan.steps, execution.steps), start=1):
            step_exec.transition(StepStatus.RUNNING)
            execution.log(f"Executing step {index}: {step.id}")
            notify(execution)

            try:
                self._execute_step(step, step_exec, credentials)
            except StackPilotError as e:
                logger.error(f"Step {step.id} failed: {e.message}")
                self._fail_step(step_exec, e.message)
                execution.fail(f"Step {index} failed: {e.message}", step_id=step.id)
                notify(execution)
                return execution
            except KeyboardInterrupt:
                logger.warning(f"Execution {execution.id} cancelled during {step.id}")
                self._fail_step(step_exec, "Cancelled")
                execution.fail(f"Step {index} cancelled", step_id=step.id)
                notify(execution)
                raise
            except Exception as e:
                logger.exception(f"Step {step.id} failed unexpectedly")
                message = f"{type(e).__name__}: {e}"
                self._fail_step(step_exec, message)
                execution.fail(f"Step {index} failed: {message}", step_id=step.id)
                notify(execution)
                return execution

            step_exec.log(f"Completed: {step.description}")
            step_exec.transition(StepStatus.COMPLETED)
            execution.log(f"Step {index} completed successfully")
            notify(execution)

        execution.log("Deployment completed successfully")
        execution.transition(ExecutionStatus.COMPLETED)
        logger.info(f"Execution {execution.id} completed")
        notify(execution)
        return execution

    @staticmethod
    def _fail_step(step_exec: DeploymentStepExecution, message: str) -> None:
        step_exec.log(f"Failed: {message}")
        step_exec.error = message
        step_exec.transition(StepStatus.FAILED)

    def _execute_step(
        self,
        step: DeploymentStep,
        step_exec: DeploymentStepExecution,
        credentials: ClusterCredentials,
    ) -> None:
        step_exec.log(f"Starting: {step.description or step.name}")

        package = step.package
        if package is not None and package.repository_url:
            try:
                self.package_manager.add_source(package.repository, package.repository_url)
            except SourceRegistrationError as e:
                step_exec.log(f"Failed to add repository: {e.output or e.message}")
                raise
            step_exec.log(f"Added repository: {package.repository} ({package.repository_url})")

        if step.command:
            argv = shlex.split(step.command)
            if not argv:
                raise StepExecutionError("Empty command", step_id=step.id)
            step_exec.log(f"Executing command: {step.command}")
            output, exit_status = self.package_manager.run_command(
                argv, credentials, self.step_timeout
            )
        elif package is not None:
            with values_file(step.values) as path:
                step_exec.log(f"Installing chart: {package.chart_reference} {package.version}".rstrip())
                output, exit_status = self.package_manager.install(
                    step, path, credentials, self.step_timeout
                )
        else:
            raise StepExecutionError("Step has neither a package nor a command", step_id=step.id)

        if output:
            step_exec.log(output.rstrip())

        if exit_status == TIMEOUT_EXIT_STATUS:
            raise StepExecutionError(
                f"Timed out after {self.step_timeout}s: {_tail(output)}",
                step_id=step.id,
                output=output,
                exit_status=exit_status,
            )
        if exit_status != 0:
            raise StepExecutionError(
                f"Exit status {exit_status}: {_tail(output)}",
                step_id=step.id,
                output=output,
                exit_status=exit_status,
            )
