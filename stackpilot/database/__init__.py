"""Database package for stackpilot."""

from .connection import AsyncDatabaseConnection, DatabaseConnection

__all__ = ["DatabaseConnection", "AsyncDatabaseConnection"]
