"""
Data models for database configuration and provisioning results.
"""

from provisioner.models.database import (
    DatabaseType,
    SQLiteConfig,
    PostgreSQLConfig,
    DatabaseConfig,
    SetupConfig,
    parse_database_config,
)
from provisioner.models.results import ErrorType, ConnectionTestResult, MigrationResult

__all__ = [
    "DatabaseType",
    "SQLiteConfig",
    "PostgreSQLConfig",
    "DatabaseConfig",
    "SetupConfig",
    "parse_database_config",
    "ErrorType",
    "ConnectionTestResult",
    "MigrationResult",
]
