"""Tests for the command line interface."""

import pytest
from unittest.mock import patch
from typer.testing import CliRunner

from stackpilot.cli.main import app
from stackpilot.errors import ConnectivityError, PlanNotFoundError
from stackpilot.model.execution import DeploymentExecution, ExecutionStatus
from stackpilot.model.plan import StepStatus

runner = CliRunner()


@pytest.fixture
def service():
    with patch("stackpilot.cli.main.DeploymentService") as mock_service_class:
        yield mock_service_class.return_value


class TestCli:
    def test_plan(self, service, sample_plan):
        service.create_plan.return_value = sample_plan

        result = runner.invoke(app, ["plan", "monitoring"])

        assert result.exit_code == 0
        assert "stackpilot deploy plan-test" in result.stdout
        service.create_plan.assert_called_once_with("monitoring", credentials=None, requirements=None)

    def test_plan_with_requirements_file(self, service, sample_plan, tmp_path):
        service.create_plan.return_value = sample_plan
        values = tmp_path / "values.yaml"
        values.write_text("replicaCount: 3\n")

        result = runner.invoke(app, ["plan", "redis", "--values", str(values), "--context", "prod"])

        assert result.exit_code == 0
        kwargs = service.create_plan.call_args[1]
        assert kwargs["requirements"] == {"replicaCount": 3}
        assert kwargs["credentials"].context == "prod"

    def test_deploy_success(self, service, sample_plan):
        execution = DeploymentExecution.for_plan(sample_plan)
        for step in execution.steps:
            step.transition(StepStatus.RUNNING)
            step.transition(StepStatus.COMPLETED)
        execution.transition(ExecutionStatus.COMPLETED)
        service.execute_plan.return_value = execution

        result = runner.invoke(app, ["deploy", "plan-test"])

        assert result.exit_code == 0
        assert "Deployment completed successfully" in result.stdout

    def test_deploy_failure_exits_nonzero(self, service, sample_plan):
        execution = DeploymentExecution.for_plan(sample_plan)
        execution.fail("Package manager unavailable: offline")
        service.execute_plan.return_value = execution

        result = runner.invoke(app, ["deploy", "plan-test"])

        assert result.exit_code == 1
        assert "Package manager unavailable" in result.stdout

    def test_show_plan_not_found(self, service):
        service.get_plan.side_effect = PlanNotFoundError("plan-x")

        result = runner.invoke(app, ["show-plan", "plan-x"])

        assert result.exit_code == 1
        assert "Deployment plan not found" in result.stdout

    def test_show_plan_json(self, service, sample_plan):
        service.get_plan.return_value = sample_plan

        result = runner.invoke(app, ["show-plan", "plan-test", "--format", "json"])

        assert result.exit_code == 0
        assert '"id": "plan-test"' in result.stdout

    def test_analyze_unreachable(self, service):
        service.analyze_cluster.side_effect = ConnectivityError("Failed to reach the cluster control plane")

        result = runner.invoke(app, ["analyze"])

        assert result.exit_code == 1
        assert "Failed to reach" in result.stdout

    def test_analyze(self, service, sample_analysis):
        service.analyze_cluster.return_value = sample_analysis

        result = runner.invoke(app, ["analyze", "--context", "test-cluster"])

        assert result.exit_code == 0
        assert "v1.29.2" in result.stdout

    def test_classify(self, service):
        service.classify_request.return_value = {"is_deployment": False, "description": "hello"}

        result = runner.invoke(app, ["classify", "hello"])

        assert result.exit_code == 0
        assert "not a deployment request" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "stackpilot" in result.stdout
