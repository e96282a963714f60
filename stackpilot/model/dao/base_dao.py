"""Base DAO shared by the deployment tables."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ...database.connection import DatabaseConnection
from ...utils.logger import get_logger

logger = get_logger(__name__)


class BaseDAO(ABC):
    """Table access with named parameters.

    The connection rewrites ``:name`` parameters for asyncpg, so one query
    text serves both SQLite and PostgreSQL.
    """

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    @abstractmethod
    def get_table_name(self) -> str:
        """Get the table name for this DAO."""

    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Find record by ID."""
        query = f"SELECT * FROM {self.get_table_name()} WHERE id = :id"
        return self.db.fetch_one(query, {"id": record_id})

    def find_where(
        self,
        where_clause: str = "",
        params: Optional[Dict[str, Any]] = None,
        order_by: str = "",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Find records with an optional where clause."""
        query = f"SELECT * FROM {self.get_table_name()}"
        values = dict(params or {})

        if where_clause:
            query += f" WHERE {where_clause}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += " LIMIT :limit"
            values["limit"] = limit

        return self.db.fetch_all(query, values)

    def upsert(self, record: Dict[str, Any]) -> int:
        """Insert a record or replace the row with the same ID."""
        columns = list(record.keys())
        placeholders = ", ".join(f":{col}" for col in columns)
        updates = ", ".join(f"{col} = excluded.{col}" for col in columns if col != "id")
        query = (
            f"INSERT INTO {self.get_table_name()} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT (id) DO UPDATE SET {updates}"
        )
        return self.db.execute(query, record)
