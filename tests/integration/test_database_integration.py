"""Integration tests for database operations."""

import pytest
import tempfile
import threading
from pathlib import Path
from unittest.mock import Mock

from stackpilot.api.deployment_service import DeploymentService
from stackpilot.config import Settings
from stackpilot.core.executor import StepExecutor
from stackpilot.database.connection import AsyncDatabaseConnection, DatabaseConnection
from stackpilot.model.execution import ExecutionStatus
from stackpilot.model.repository.deployment_repository import DeploymentRepository


@pytest.mark.integration
class TestDatabaseIntegration:
    """Integration tests that use a real SQLite database."""

    def setup_method(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test.db"
        self.db_url = f"sqlite:///{self.db_path}"

    def teardown_method(self):
        """Clean up test database."""
        if self.db_path.exists():
            self.db_path.unlink()

    @pytest.mark.asyncio
    async def test_async_database_full_cycle(self):
        """Test full async database lifecycle."""
        db = AsyncDatabaseConnection(self.db_url)

        try:
            await db.connect()
            assert await db.test_connection() is True

            await db.execute(
                "INSERT INTO deployment_plans (id, name, request_text, step_count, created_at, plan_data) "
                "VALUES (:id, :name, :request_text, :step_count, :created_at, :plan_data)",
                {
                    "id": "plan-1",
                    "name": "Deploy redis Stack",
                    "request_text": "redis",
                    "step_count": 1,
                    "created_at": "2024-01-01T12:00:00",
                    "plan_data": "{}",
                },
            )

            result = await db.fetch_one("SELECT * FROM deployment_plans WHERE id = :id", {"id": "plan-1"})
            assert result["name"] == "Deploy redis Stack"
            assert result["step_count"] == 1

            affected = await db.execute(
                "UPDATE deployment_plans SET step_count = :count WHERE id = :id",
                {"count": 2, "id": "plan-1"},
            )
            assert affected == 1

            stats = await db.get_database_stats()
            assert stats == {"deployment_plans": 1, "deployment_executions": 0}
        finally:
            await db.disconnect()

    def test_repository_round_trip(self, sample_plan, fake_package_manager, credentials):
        """Plans and executions survive a save and reload."""
        db = DatabaseConnection(self.db_url)
        try:
            repository = DeploymentRepository(db)
            repository.save_plan(sample_plan)

            saved = []

            def persist(execution):
                repository.save_execution(execution)
                saved.append(execution.status)

            execution = StepExecutor(fake_package_manager).execute(
                sample_plan, credentials, on_update=persist
            )

            assert repository.get_plan("plan-test") == sample_plan
            stored = repository.get_execution(execution.id)
            assert stored.status == ExecutionStatus.COMPLETED
            assert stored.completed_steps == ["step-1", "step-2", "step-3"]
            assert [e.id for e in repository.list_executions("plan-test")] == [execution.id]
            assert len(saved) > 3
            assert db.get_database_stats() == {"deployment_plans": 1, "deployment_executions": 1}
        finally:
            db.close()

    def test_plan_save_is_idempotent(self, sample_plan):
        db = DatabaseConnection(self.db_url)
        try:
            repository = DeploymentRepository(db)
            repository.save_plan(sample_plan)
            repository.save_plan(sample_plan)

            assert [p.id for p in repository.list_plans()] == ["plan-test"]
        finally:
            db.close()

    def test_concurrent_executions_share_one_connection(
        self, sample_plan, fake_registry, fake_package_manager, credentials
    ):
        """Two executions of one plan run side by side and both are stored."""
        service = DeploymentService(
            settings=Settings(database_url=self.db_url),
            registry=fake_registry,
            package_manager=fake_package_manager,
            analyzer=Mock(),
        )
        db = service.repository.plan_dao.db
        try:
            service.repository.save_plan(sample_plan)
            results = []
            errors = []

            def run():
                try:
                    results.append(service.execute_plan(sample_plan.id, credentials))
                except Exception as e:
                    errors.append(e)

            threads = [threading.Thread(target=run, daemon=True) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

            assert not any(thread.is_alive() for thread in threads)
            assert errors == []
            assert [e.status for e in results] == [ExecutionStatus.COMPLETED] * 2
            stored = service.list_executions(plan_id=sample_plan.id)
            assert sorted(e.id for e in stored) == sorted(e.id for e in results)
            assert all(e.status == ExecutionStatus.COMPLETED for e in stored)
        finally:
            db.close()
