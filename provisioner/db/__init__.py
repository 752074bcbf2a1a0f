"""
Database connection testing, adapters and schema migration.
"""

from provisioner.db.adapters import PostgresAdapter, SQLiteAdapter
from provisioner.db.connection import DatabaseConnectionManager
from provisioner.db.migrations import MigrationManager
from provisioner.db.schema import REQUIRED_TABLES

__all__ = [
    "SQLiteAdapter",
    "PostgresAdapter",
    "DatabaseConnectionManager",
    "MigrationManager",
    "REQUIRED_TABLES",
]
