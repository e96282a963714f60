"""Error taxonomy for the deployment engine."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes attached to every StackPilotError."""

    CONNECTIVITY = "CONNECTIVITY"
    PROBE_FAILED = "PROBE_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    REGISTRY_ERROR = "REGISTRY_ERROR"
    REGISTRY_TIMEOUT = "REGISTRY_TIMEOUT"
    NO_MATCH = "NO_MATCH"
    BOOTSTRAP_FAILED = "BOOTSTRAP_FAILED"
    SOURCE_REGISTRATION_FAILED = "SOURCE_REGISTRATION_FAILED"
    RENDER_FAILED = "RENDER_FAILED"
    STEP_FAILED = "STEP_FAILED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN = "UNKNOWN"


class StackPilotError(Exception):
    """Base exception carrying a code and structured details.

    Attributes:
        message: human readable description
        code: error code
        details: extra context such as resource names or command output
    """

    code = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a serializable dictionary."""
        return {
            "error": self.message,
            "code": self.code.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.value}] {self.message} ({details_str})"
        return f"[{self.code.value}] {self.message}"


class ConnectivityError(StackPilotError):
    """The control plane could not be reached or its version could not be read."""

    code = ErrorCode.CONNECTIVITY


class ProbeError(StackPilotError):
    """A single discovery probe failed."""

    code = ErrorCode.PROBE_FAILED

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        all_details = details or {}
        if resource_type:
            all_details["resource_type"] = resource_type
        self.resource_type = resource_type
        super().__init__(message, details=all_details)


class ProbePermissionError(ProbeError):
    """A discovery probe was denied by RBAC."""

    code = ErrorCode.PERMISSION_DENIED


class RegistryError(StackPilotError):
    """The package registry returned an error or an unreadable response."""

    code = ErrorCode.REGISTRY_ERROR


class RegistryTimeoutError(RegistryError):
    """The package registry did not answer before the deadline."""

    code = ErrorCode.REGISTRY_TIMEOUT


class NoMatchError(StackPilotError):
    """The registry search returned no candidates."""

    code = ErrorCode.NO_MATCH

    def __init__(self, query: str):
        self.query = query
        super().__init__(f"No packages found for: {query}", details={"query": query})


class BootstrapError(StackPilotError):
    """The package-manager tool is missing and could not be installed."""

    code = ErrorCode.BOOTSTRAP_FAILED


class SourceRegistrationError(StackPilotError):
    """Adding a package repository failed."""

    code = ErrorCode.SOURCE_REGISTRATION_FAILED

    def __init__(self, message: str, name: str, url: str, output: str = ""):
        self.name = name
        self.url = url
        self.output = output
        super().__init__(message, details={"name": name, "url": url})


class RenderError(StackPilotError):
    """A values document could not be composed or serialized."""

    code = ErrorCode.RENDER_FAILED


class StepExecutionError(StackPilotError):
    """A step exited non-zero or timed out."""

    code = ErrorCode.STEP_FAILED

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        output: str = "",
        exit_status: Optional[int] = None,
    ):
        self.step_id = step_id
        self.output = output
        self.exit_status = exit_status
        details: Dict[str, Any] = {}
        if step_id:
            details["step_id"] = step_id
        if exit_status is not None:
            details["exit_status"] = exit_status
        super().__init__(message, details=details)


class InvalidTransitionError(StackPilotError):
    """A status change would move a step or execution backwards."""

    code = ErrorCode.INVALID_TRANSITION


class PlanNotFoundError(StackPilotError):
    """No plan is stored under the requested identifier."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Deployment plan not found: {plan_id}", details={"plan_id": plan_id})


class ExecutionNotFoundError(StackPilotError):
    """No execution is stored under the requested identifier."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(
            f"Deployment execution not found: {execution_id}",
            details={"execution_id": execution_id},
        )
