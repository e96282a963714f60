"""Async database connection using aiosqlite or asyncpg."""

import asyncio
import threading
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiosqlite
import asyncpg

from ..config import default_database_url
from ..utils.logger import get_logger

logger = get_logger(__name__)

TABLES = ["deployment_plans", "deployment_executions"]


class DatabaseDialect(Enum):
    """Enum for database dialects."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    UNKNOWN = "unknown"


DIALECT_DETECTORS: Dict[str, Callable[[str], bool]] = {
    "sqlite": lambda url: url.startswith("sqlite"),
    "postgresql": lambda url: url.startswith("postgresql") or url.startswith("postgres://"),
}


def detect_database_dialect(database_url: str) -> str:
    """Detect database dialect from URL."""
    for dialect_name, detector_func in DIALECT_DETECTORS.items():
        if detector_func(database_url):
            return dialect_name
    return DatabaseDialect.UNKNOWN.value


def _convert_postgres(query: str, values: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
    """Convert :named parameters to asyncpg positional parameters."""
    if not values:
        return query, []

    new_query = ""
    params: List[Any] = []
    positions: Dict[str, int] = {}
    i = 0
    while i < len(query):
        if query[i] == ":" and i + 1 < len(query) and (query[i + 1].isalpha() or query[i + 1] == "_"):
            j = i + 1
            while j < len(query) and (query[j].isalnum() or query[j] == "_"):
                j += 1
            name = query[i + 1 : j]
            if name not in positions:
                params.append(values.get(name))
                positions[name] = len(params)
            new_query += f"${positions[name]}"
            i = j
        else:
            new_query += query[i]
            i += 1
    return new_query, params


SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS deployment_plans (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        request_text TEXT,
        step_count INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        plan_data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deployment_executions (
        id TEXT PRIMARY KEY,
        plan_id TEXT NOT NULL,
        status TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT,
        error TEXT,
        execution_data TEXT NOT NULL,
        FOREIGN KEY (plan_id) REFERENCES deployment_plans (id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_plan_created ON deployment_plans (created_at)",
    "CREATE INDEX IF NOT EXISTS idx_execution_plan ON deployment_executions (plan_id)",
    "CREATE INDEX IF NOT EXISTS idx_execution_start ON deployment_executions (start_time)",
]

POSTGRESQL_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS deployment_plans (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        request_text TEXT,
        step_count INTEGER DEFAULT 0,
        created_at VARCHAR(32) NOT NULL,
        plan_data JSONB NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deployment_executions (
        id VARCHAR(64) PRIMARY KEY,
        plan_id VARCHAR(64) NOT NULL,
        status VARCHAR(20) NOT NULL,
        start_time VARCHAR(32) NOT NULL,
        end_time VARCHAR(32),
        error TEXT,
        execution_data JSONB NOT NULL,
        FOREIGN KEY (plan_id) REFERENCES deployment_plans (id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_plan_created ON deployment_plans (created_at)",
    "CREATE INDEX IF NOT EXISTS idx_execution_plan ON deployment_executions (plan_id)",
    "CREATE INDEX IF NOT EXISTS idx_execution_start ON deployment_executions (start_time)",
]


class AsyncDatabaseConnection:
    """Async database connection manager."""

    def __init__(self, database_url: Optional[str] = None):
        if database_url is None:
            database_url = default_database_url()

        self.database_url = database_url
        self.dialect = detect_database_dialect(database_url)
        self._connected = False
        self._conn: Optional[aiosqlite.Connection] = None
        self._pool: Optional[asyncpg.pool.Pool] = None
        self._in_transaction = 0
        self._tx_conn: Optional[asyncpg.Connection] = None

        logger.debug(f"Database initialized: {database_url}")

    async def connect(self):
        """Connect to database."""
        if self._connected:
            return

        if self.dialect == DatabaseDialect.SQLITE.value:
            path = self.database_url.replace("sqlite:///", "")
            if path != ":memory:":
                Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(path)
            self._conn.row_factory = aiosqlite.Row
        elif self.dialect == DatabaseDialect.POSTGRESQL.value:
            self._pool = await asyncpg.create_pool(self.database_url)
        else:
            raise ValueError(f"Unsupported database URL: {self.database_url}")

        self._connected = True
        await self.initialize_schema()
        logger.debug("Database connected")

    async def disconnect(self):
        """Disconnect from database."""
        if not self._connected:
            return

        if self.dialect == DatabaseDialect.SQLITE.value and self._conn:
            await self._conn.close()
        elif self.dialect == DatabaseDialect.POSTGRESQL.value and self._pool:
            await self._pool.close()

        self._connected = False
        logger.debug("Database disconnected")

    @asynccontextmanager
    async def transaction(self):
        """Transaction context manager."""
        await self.connect()
        if self.dialect == DatabaseDialect.SQLITE.value and self._conn:
            await self._conn.execute("BEGIN")
            self._in_transaction += 1
            try:
                yield self
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
            finally:
                self._in_transaction -= 1
        elif self.dialect == DatabaseDialect.POSTGRESQL.value and self._pool:
            conn = await self._pool.acquire()
            tx = conn.transaction()
            await tx.start()
            self._in_transaction += 1
            prev_conn = self._tx_conn
            self._tx_conn = conn
            try:
                yield self
                await tx.commit()
            except Exception:
                await tx.rollback()
                raise
            finally:
                self._in_transaction -= 1
                self._tx_conn = prev_conn
                await self._pool.release(conn)
        else:
            yield self

    async def initialize_schema(self):
        """Initialize database schema."""
        schemas = {
            DatabaseDialect.SQLITE.value: SQLITE_SCHEMA,
            DatabaseDialect.POSTGRESQL.value: POSTGRESQL_SCHEMA,
        }
        queries = schemas.get(self.dialect)
        if queries is None:
            logger.warning(f"No schema for dialect: {self.dialect}")
            return
        for query in queries:
            await self.execute(query)
        logger.debug("Database schema initialized")

    async def execute(self, query: str, values: Optional[Dict[str, Any]] = None) -> int:
        """Execute a query and return affected rows."""
        await self.connect()
        if self.dialect == DatabaseDialect.SQLITE.value and self._conn:
            cursor = await self._conn.execute(query, values or {})
            if self._in_transaction == 0:
                await self._conn.commit()
            return cursor.rowcount
        elif self.dialect == DatabaseDialect.POSTGRESQL.value and self._pool:
            pg_query, params = _convert_postgres(query, values)
            conn = self._tx_conn or self._pool
            result = await conn.execute(pg_query, *params)
            try:
                return int(result.split()[-1])
            except (ValueError, IndexError):
                return 0
        else:
            raise RuntimeError("Database not connected")

    async def fetch_one(
        self, query: str, values: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Fetch one row as dictionary."""
        await self.connect()
        if self.dialect == DatabaseDialect.SQLITE.value and self._conn:
            cursor = await self._conn.execute(query, values or {})
            row = await cursor.fetchone()
            return dict(row) if row else None
        elif self.dialect == DatabaseDialect.POSTGRESQL.value and self._pool:
            pg_query, params = _convert_postgres(query, values)
            conn = self._tx_conn or self._pool
            row = await conn.fetchrow(pg_query, *params)
            return dict(row) if row else None
        return None

    async def fetch_all(
        self, query: str, values: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Fetch all rows as list of dictionaries."""
        await self.connect()
        if self.dialect == DatabaseDialect.SQLITE.value and self._conn:
            cursor = await self._conn.execute(query, values or {})
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
        elif self.dialect == DatabaseDialect.POSTGRESQL.value and self._pool:
            pg_query, params = _convert_postgres(query, values)
            conn = self._tx_conn or self._pool
            rows = await conn.fetch(pg_query, *params)
            return [dict(r) for r in rows]
        return []

    async def test_connection(self) -> bool:
        """Test database connection."""
        try:
            await self.fetch_one("SELECT 1")
            return True
        except (OSError, aiosqlite.Error, asyncpg.PostgresError, ValueError) as e:
            logger.error(f"Connection test failed: {e}")
            return False

    async def get_database_stats(self) -> Dict[str, Any]:
        """Get row counts per table."""
        await self.connect()
        stats: Dict[str, Any] = {}
        for table in TABLES:
            result = await self.fetch_one(f"SELECT COUNT(*) as count FROM {table}")
            stats[table] = result["count"] if result else 0
        return stats

    def get_database_info(self) -> Dict[str, Any]:
        """Get database information."""
        engine = "aiosqlite" if self.dialect == DatabaseDialect.SQLITE.value else "asyncpg"
        return {
            "url": self.database_url,
            "connected": self._connected,
            "engine": engine,
        }


class DatabaseConnection:
    """Sync wrapper around async database connection.

    Calls from different threads take turns on one private event loop, which
    owns the underlying connection.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.async_db = AsyncDatabaseConnection(database_url)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self.dialect = self.async_db.dialect
        self.database_url = self.async_db.database_url

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        return self._loop

    def _run(self, coro):
        with self._lock:
            return self._get_loop().run_until_complete(coro)

    def execute(self, query: str, values: Optional[Dict[str, Any]] = None) -> int:
        return self._run(self.async_db.execute(query, values))

    def fetch_one(
        self, query: str, values: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        return self._run(self.async_db.fetch_one(query, values))

    def fetch_all(self, query: str, values: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._run(self.async_db.fetch_all(query, values))

    def test_connection(self) -> bool:
        return self._run(self.async_db.test_connection())

    def get_database_stats(self) -> Dict[str, Any]:
        return self._run(self.async_db.get_database_stats())

    def get_database_info(self) -> Dict[str, Any]:
        return self.async_db.get_database_info()

    def close(self):
        with self._lock:
            if self._loop is None:
                return
            if self.async_db._connected:
                self._loop.run_until_complete(self.async_db.disconnect())
            self._loop.close()
            self._loop = None
