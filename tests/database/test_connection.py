"""Unit tests for database connection layer using aiosqlite and asyncpg mocks."""

import pytest
from unittest.mock import AsyncMock, Mock, patch
from pathlib import Path

from stackpilot.config import Settings
from stackpilot.database.connection import (
    AsyncDatabaseConnection,
    DatabaseConnection,
    _convert_postgres,
    detect_database_dialect,
)


class TestHelpers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("sqlite:///tmp/x.db", "sqlite"),
            ("postgresql://u@h/db", "postgresql"),
            ("postgres://u@h/db", "postgresql"),
            ("mysql://u@h/db", "unknown"),
        ],
    )
    def test_detect_dialect(self, url, expected):
        assert detect_database_dialect(url) == expected

    def test_convert_named_parameters(self):
        query, params = _convert_postgres(
            "SELECT * FROM t WHERE id = :id OR parent = :id AND status = :status_1",
            {"id": "a", "status_1": "done"},
        )
        assert query == "SELECT * FROM t WHERE id = $1 OR parent = $1 AND status = $2"
        assert params == ["a", "done"]

    def test_convert_leaves_non_parameters(self):
        query, params = _convert_postgres("SELECT ':' || name FROM t WHERE id = :id", {"id": 1})
        assert query == "SELECT ':' || name FROM t WHERE id = $1"
        assert params == [1]

    def test_convert_without_values(self):
        assert _convert_postgres("SELECT 1", None) == ("SELECT 1", [])


class TestAsyncDatabaseConnection:
    """Test AsyncDatabaseConnection functionality."""

    @pytest.mark.asyncio
    async def test_init_with_default_url(self):
        conn = AsyncDatabaseConnection()
        expected_path = Path.home() / ".stackpilot" / "deployments.db"
        assert conn.database_url == f"sqlite:///{expected_path}"
        assert conn.database_url == Settings().database_url

    @pytest.mark.asyncio
    async def test_connect_creates_database_directory(self, tmp_path):
        db_path = tmp_path / "state" / "deployments.db"
        conn = AsyncDatabaseConnection(f"sqlite:///{db_path}")
        try:
            await conn.connect()
            assert db_path.parent.is_dir()
        finally:
            await conn.disconnect()

    @pytest.mark.asyncio
    async def test_connect_sqlite(self):
        mock_conn = AsyncMock()
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)) as mock_connect:
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            mock_connect.assert_called_once_with("test.db")
            assert conn._connected is True

    @pytest.mark.asyncio
    async def test_connect_initializes_schema(self):
        mock_cursor = AsyncMock()
        mock_conn = AsyncMock()
        mock_conn.execute.return_value = mock_cursor
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)):
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            await conn.connect()

        statements = [c[0][0] for c in mock_conn.execute.call_args_list]
        assert any("CREATE TABLE IF NOT EXISTS deployment_plans" in s for s in statements)
        assert any("CREATE TABLE IF NOT EXISTS deployment_executions" in s for s in statements)

    @pytest.mark.asyncio
    async def test_disconnect_sqlite(self):
        mock_conn = AsyncMock()
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)):
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            await conn.disconnect()
            mock_conn.close.assert_called_once()
            assert conn._connected is False

    @pytest.mark.asyncio
    async def test_execute_fetch_sqlite(self):
        mock_cursor = AsyncMock()
        mock_cursor.rowcount = 1
        mock_cursor.fetchone.return_value = {"id": "plan-1"}
        mock_cursor.fetchall.return_value = [{"id": "plan-1"}, {"id": "plan-2"}]
        mock_conn = AsyncMock()
        mock_conn.execute.return_value = mock_cursor
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)):
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            result = await conn.execute("INSERT", {"a": 1})
            assert result == 1
            one = await conn.fetch_one("SELECT", {"a": 1})
            assert one == {"id": "plan-1"}
            all_rows = await conn.fetch_all("SELECT", None)
            assert len(all_rows) == 2
            mock_conn.commit.assert_called()

    @pytest.mark.asyncio
    async def test_execute_postgresql(self):
        mock_pool = AsyncMock()
        mock_pool.execute.return_value = "INSERT 0 1"
        with patch("asyncpg.create_pool", new=AsyncMock(return_value=mock_pool)):
            conn = AsyncDatabaseConnection("postgresql://test")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            result = await conn.execute(
                "INSERT INTO deployment_plans (id, name) VALUES (:id, :name)",
                {"id": "plan-1", "name": "x"},
            )

        assert result == 1
        mock_pool.execute.assert_called_once_with(
            "INSERT INTO deployment_plans (id, name) VALUES ($1, $2)", "plan-1", "x"
        )

    @pytest.mark.asyncio
    async def test_fetch_one_postgresql(self):
        mock_pool = AsyncMock()
        mock_pool.fetchrow.return_value = {"id": "plan-1"}
        with patch("asyncpg.create_pool", new=AsyncMock(return_value=mock_pool)):
            conn = AsyncDatabaseConnection("postgresql://test")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            row = await conn.fetch_one("SELECT * FROM deployment_plans WHERE id = :id", {"id": "plan-1"})

        assert row == {"id": "plan-1"}
        mock_pool.fetchrow.assert_called_once_with("SELECT * FROM deployment_plans WHERE id = $1", "plan-1")

    @pytest.mark.asyncio
    async def test_unsupported_url(self):
        conn = AsyncDatabaseConnection("mysql://test")
        with pytest.raises(ValueError, match="Unsupported database URL"):
            await conn.connect()

    @pytest.mark.asyncio
    async def test_test_connection_success(self):
        mock_cursor = AsyncMock()
        mock_cursor.fetchone.return_value = {"result": 1}
        mock_conn = AsyncMock()
        mock_conn.execute.return_value = mock_cursor
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)):
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            assert await conn.test_connection() is True

    @pytest.mark.asyncio
    async def test_get_database_stats(self):
        mock_cursor = AsyncMock()
        mock_cursor.fetchone.side_effect = [{"count": 4}, {"count": 7}]
        mock_conn = AsyncMock()
        mock_conn.execute.return_value = mock_cursor
        with patch("aiosqlite.connect", new=AsyncMock(return_value=mock_conn)):
            conn = AsyncDatabaseConnection("sqlite:///test.db")
            with patch.object(conn, "initialize_schema", new_callable=AsyncMock):
                await conn.connect()
            stats = await conn.get_database_stats()
            assert stats == {"deployment_plans": 4, "deployment_executions": 7}

    def test_get_database_info(self):
        conn = AsyncDatabaseConnection("sqlite:///test.db")
        info = conn.get_database_info()
        assert info["engine"] == "aiosqlite"
        assert info["connected"] is False


class TestDatabaseConnectionSyncWrapper:
    """Test DatabaseConnection sync wrapper."""

    def test_execute_sync(self):
        async_conn = AsyncMock()
        async_conn.execute.return_value = 1
        with patch("stackpilot.database.connection.AsyncDatabaseConnection", return_value=async_conn):
            conn = DatabaseConnection("sqlite:///test.db")
            loop = Mock()
            loop.run_until_complete.return_value = 1
            with patch.object(conn, "_get_loop", return_value=loop):
                result = conn.execute("INSERT", {})
        assert result == 1
        loop.run_until_complete.assert_called_once()

    def test_close_without_use(self):
        conn = DatabaseConnection("sqlite:///test.db")
        conn.close()
        assert conn._loop is None
