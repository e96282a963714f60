"""Tests for settings and the error taxonomy."""

from pathlib import Path

from stackpilot.config import Settings
from stackpilot.errors import (
    ErrorCode,
    NoMatchError,
    PlanNotFoundError,
    ProbePermissionError,
    StackPilotError,
    StepExecutionError,
)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("STACKPILOT_MAX_CANDIDATES", "STACKPILOT_STEP_TIMEOUT", "STACKPILOT_DATABASE_URL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.max_candidates == 3
        assert settings.step_timeout == 600
        assert settings.registry_url == "https://artifacthub.io"
        assert settings.database_url.startswith("sqlite:///")
        assert settings.database_url.endswith("deployments.db")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STACKPILOT_MAX_CANDIDATES", "5")
        monkeypatch.setenv("STACKPILOT_REGISTRY_TIMEOUT", "2.5")
        monkeypatch.setenv("STACKPILOT_FETCH_DEFAULTS", "no")
        monkeypatch.setenv("STACKPILOT_HELM_BIN_DIR", "/opt/helm")
        monkeypatch.setenv("STACKPILOT_DATABASE_URL", "postgresql://u:p@db/deploys")

        settings = Settings.from_env()

        assert settings.max_candidates == 5
        assert settings.registry_timeout == 2.5
        assert settings.fetch_defaults is False
        assert settings.helm_bin_dir == Path("/opt/helm")
        assert settings.database_url == "postgresql://u:p@db/deploys"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("STACKPILOT_STEP_TIMEOUT", "-1")
        monkeypatch.setenv("STACKPILOT_PROBE_WORKERS", "many")
        monkeypatch.setenv("STACKPILOT_FETCH_DEFAULTS", "maybe")

        settings = Settings.from_env()

        assert settings.step_timeout == 600
        assert settings.probe_workers == 8
        assert settings.fetch_defaults is True


class TestErrors:
    def test_str_includes_code_and_details(self):
        error = PlanNotFoundError("plan-x")
        assert str(error) == "[NOT_FOUND] Deployment plan not found: plan-x (plan_id=plan-x)"

    def test_to_dict(self):
        error = StepExecutionError("Exit status 1: boom", step_id="step-2", exit_status=1)
        assert error.to_dict() == {
            "error": "Exit status 1: boom",
            "code": "STEP_FAILED",
            "details": {"step_id": "step-2", "exit_status": 1},
        }

    def test_hierarchy(self):
        assert isinstance(ProbePermissionError("denied"), StackPilotError)
        assert ProbePermissionError("denied").code == ErrorCode.PERMISSION_DENIED
        assert NoMatchError("redis").message == "No packages found for: redis"

    def test_explicit_code(self):
        assert StackPilotError("x", code=ErrorCode.RENDER_FAILED).code == ErrorCode.RENDER_FAILED
        assert StackPilotError("x").code == ErrorCode.UNKNOWN
