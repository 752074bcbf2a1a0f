"""
Connection testing and adapter creation for both database engines.

The manager is stateless: every probe opens and releases its own
resources, and every adapter it creates belongs to the caller.

Usage:
    manager = DatabaseConnectionManager()
    result = await manager.test_connection(config)
    if result.success:
        adapter = await manager.create_adapter(config)
        try:
            ...
        finally:
            await adapter.close()
"""
import asyncio
import os
import uuid
from typing import Awaitable, Callable, Dict, List, Union

import aiosqlite
import asyncpg

from provisioner.db.adapters import (
    SQLITE_BUSY_TIMEOUT,
    PostgresAdapter,
    SQLiteAdapter,
    postgres_connect_kwargs,
    quote_ident,
)
from provisioner.errors import AdapterError, InvalidDatabaseConfigError
from provisioner.models.database import DatabaseConfig, DatabaseType, PostgreSQLConfig, SQLiteConfig
from provisioner.models.results import ConnectionTestResult, ErrorType
from provisioner.utils.logger import get_logger

logger = get_logger(__name__)

Adapter = Union[SQLiteAdapter, PostgresAdapter]

PROBE_TIMEOUT = 5.0  # seconds, connect and command

# SQLSTATE codes used for classification
SQLSTATE_INVALID_PASSWORD = "28P01"
SQLSTATE_INVALID_AUTHORIZATION = "28000"
SQLSTATE_UNKNOWN_DATABASE = "3D000"
SQLSTATE_INSUFFICIENT_PRIVILEGE = "42501"


SUGGESTIONS: Dict[DatabaseType, Dict[ErrorType, List[str]]] = {
    DatabaseType.SQLITE: {
        ErrorType.FILESYSTEM: [
            "Ensure the directory exists and is writable",
            "Check permissions along the file path",
            "Verify the application has write access to the directory",
            "Try an absolute path instead of a relative one",
        ],
        ErrorType.PERMISSIONS: [
            "Check that the database file is readable and writable",
            "Make sure no other process holds a lock on the database file",
            "Verify the application user has write permissions",
        ],
        ErrorType.UNKNOWN: [
            "Verify the file path is correct",
            "Check that the directory exists",
            "Review the error message for specific details",
        ],
    },
    DatabaseType.POSTGRESQL: {
        ErrorType.NETWORK: [
            "Verify the PostgreSQL server is running",
            "Check that host and port are correct",
            "Ensure the firewall allows connections on the configured port",
            "Try connecting from the command line with psql",
        ],
        ErrorType.AUTHENTICATION: [
            "Verify username and password are correct",
            "Check that the user exists and is allowed to log in",
            "Review pg_hba.conf authentication rules",
        ],
        ErrorType.PERMISSIONS: [
            "Ensure the user has CREATE TABLE privileges",
            "Grant privileges: GRANT CREATE ON DATABASE <dbname> TO <username>",
            "Verify the user has access to the specified database",
            "Review database and schema permissions",
        ],
        ErrorType.UNKNOWN: [
            "Check the PostgreSQL server logs for details",
            "Verify all connection parameters are correct",
            "Try connecting with a PostgreSQL client tool",
        ],
    },
}

DEFAULT_SUGGESTIONS = [
    "Check the error message for details",
    "Verify your configuration is correct",
    "Consult the database documentation",
]

INVALID_CONFIG_SUGGESTIONS = [
    "Ensure the database type and its settings are fully specified",
    "Check that required fields are not empty and the port is between 1 and 65535",
]


def get_suggestions(db_type: DatabaseType, error_type: ErrorType) -> List[str]:
    """Troubleshooting hints for a failure category."""
    return list(SUGGESTIONS.get(db_type, {}).get(error_type, DEFAULT_SUGGESTIONS))


def _classify_sqlite_error(error: Exception) -> ErrorType:
    message = str(error).lower()
    if any(word in message for word in ("readonly", "read-only", "locked", "permission")):
        return ErrorType.PERMISSIONS
    if "unable to open" in message:
        return ErrorType.FILESYSTEM
    return ErrorType.UNKNOWN


def _classify_postgres_error(error: BaseException) -> ErrorType:
    # asyncio.TimeoutError is an OSError subclass only on 3.11+
    if isinstance(error, (OSError, asyncio.TimeoutError)):
        return ErrorType.NETWORK

    sqlstate = getattr(error, "sqlstate", None)
    message = str(error).lower()

    if sqlstate in (SQLSTATE_INVALID_PASSWORD, SQLSTATE_INVALID_AUTHORIZATION):
        return ErrorType.AUTHENTICATION
    if "authentication" in message or "password" in message:
        return ErrorType.AUTHENTICATION
    if sqlstate == SQLSTATE_INSUFFICIENT_PRIVILEGE:
        return ErrorType.PERMISSIONS
    if "permission" in message or "access" in message:
        return ErrorType.PERMISSIONS
    return ErrorType.UNKNOWN


def _is_unknown_database(error: BaseException) -> bool:
    if getattr(error, "sqlstate", None) == SQLSTATE_UNKNOWN_DATABASE:
        return True
    message = str(error).lower()
    return "database" in message and "does not exist" in message


class DatabaseConnectionManager:
    """Tests configurations and creates live adapters."""

    def __init__(self):
        self._testers: Dict[DatabaseType, Callable[[DatabaseConfig], Awaitable[ConnectionTestResult]]] = {
            DatabaseType.SQLITE: lambda config: self._test_sqlite(config.sqlite),
            DatabaseType.POSTGRESQL: lambda config: self._test_postgresql(config.postgresql),
        }
        self._factories: Dict[DatabaseType, Callable[[DatabaseConfig], Adapter]] = {
            DatabaseType.SQLITE: lambda config: SQLiteAdapter(config.sqlite.file_path),
            DatabaseType.POSTGRESQL: lambda config: PostgresAdapter(config.postgresql),
        }

    async def test_connection(self, config: DatabaseConfig) -> ConnectionTestResult:
        """
        Probe a configuration with a live connection and a scratch table.

        Never raises; every failure is returned as a classified result.
        """
        problems = config.validation_errors()
        if problems:
            return ConnectionTestResult.failure(
                error=f"Invalid database configuration: {'; '.join(problems)}",
                error_type=ErrorType.UNKNOWN,
                suggestions=INVALID_CONFIG_SUGGESTIONS,
            )

        try:
            result = await self._testers[config.type](config)
        except Exception as e:
            result = ConnectionTestResult.failure(
                error=f"Connection test failed: {e}",
                error_type=ErrorType.UNKNOWN,
                suggestions=DEFAULT_SUGGESTIONS,
            )

        if result.success:
            logger.info("connection_test_passed", database_type=config.type.value)
        else:
            logger.warning(
                "connection_test_failed",
                database_type=config.type.value,
                error_type=result.error_type.value,
                error=result.error,
            )
        return result

    async def create_adapter(self, config: DatabaseConfig) -> Adapter:
        """
        Create a connected adapter for the configured engine.

        Raises:
            InvalidDatabaseConfigError: If the config is not usable
            AdapterError: If the driver fails to open the database
        """
        problems = config.validation_errors()
        if problems:
            raise InvalidDatabaseConfigError(problems=problems)

        adapter = self._factories[config.type](config)
        try:
            await adapter.connect()
        except Exception as e:
            await adapter.close()
            label = "SQLite" if config.type == DatabaseType.SQLITE else "PostgreSQL"
            raise AdapterError(
                f"Failed to create {label} adapter: {e}",
                database_type=config.type.value,
            )

        logger.debug("adapter_created", database_type=config.type.value)
        return adapter

    # ------------------------------------------------------------------
    # Engine probes
    # ------------------------------------------------------------------

    async def _test_sqlite(self, config: SQLiteConfig) -> ConnectionTestResult:
        db_path = os.path.abspath(config.file_path)

        try:
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
        except OSError as e:
            return ConnectionTestResult.failure(
                error=f"Cannot create database directory: {e}",
                error_type=ErrorType.FILESYSTEM,
                suggestions=get_suggestions(DatabaseType.SQLITE, ErrorType.FILESYSTEM),
            )

        db = None
        try:
            db = await aiosqlite.connect(db_path, timeout=SQLITE_BUSY_TIMEOUT)
            await db.execute("CREATE TABLE IF NOT EXISTS _connection_test (id INTEGER PRIMARY KEY)")
            await db.execute("DROP TABLE IF EXISTS _connection_test")
            await db.commit()
            return ConnectionTestResult.ok()
        except Exception as e:
            error_type = _classify_sqlite_error(e)
            if error_type == ErrorType.PERMISSIONS:
                error = f"Database file is not writable: {e}"
            elif error_type == ErrorType.FILESYSTEM:
                error = f"Cannot open database file: {e}"
            else:
                error = f"Failed to open SQLite database: {e}"
            return ConnectionTestResult.failure(
                error=error,
                error_type=error_type,
                suggestions=get_suggestions(DatabaseType.SQLITE, error_type),
            )
        finally:
            if db is not None:
                await db.close()

    async def _test_postgresql(self, config: PostgreSQLConfig) -> ConnectionTestResult:
        pool = None
        try:
            pool = await asyncpg.create_pool(
                **postgres_connect_kwargs(config),
                min_size=1,
                max_size=1,
                timeout=PROBE_TIMEOUT,
                command_timeout=PROBE_TIMEOUT,
            )
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

                if config.db_schema:
                    schema_failure = await self._select_schema(conn, config)
                    if schema_failure is not None:
                        return schema_failure

                test_table = quote_ident(f"_connection_test_{uuid.uuid4().hex}")
                try:
                    await conn.execute(f"CREATE TABLE IF NOT EXISTS {test_table} (id SERIAL PRIMARY KEY)")
                    await conn.execute(f"DROP TABLE IF EXISTS {test_table}")
                except asyncpg.PostgresError as e:
                    return ConnectionTestResult.failure(
                        error=f"Insufficient permissions: {e}",
                        error_type=ErrorType.PERMISSIONS,
                        suggestions=get_suggestions(DatabaseType.POSTGRESQL, ErrorType.PERMISSIONS),
                    )

            return ConnectionTestResult.ok()
        except Exception as e:
            return self._postgres_failure(config, e)
        finally:
            if pool is not None:
                await pool.close()

    async def _select_schema(self, conn, config: PostgreSQLConfig):
        """Check the configured schema is usable and make it current."""
        schema = config.db_schema
        try:
            usable = await conn.fetchval("SELECT has_schema_privilege($1, 'USAGE')", schema)
        except asyncpg.PostgresError as e:
            # has_schema_privilege raises when the schema does not exist
            logger.debug("schema_check_failed", schema=schema, error=str(e))
            usable = False

        if not usable:
            return ConnectionTestResult.failure(
                error=f"Schema '{schema}' does not exist or is not accessible",
                error_type=ErrorType.PERMISSIONS,
                suggestions=[
                    f"Verify that schema '{schema}' exists",
                    f"Ensure user '{config.username}' has access to the schema",
                    "Try connecting without specifying a schema",
                ],
            )

        await conn.execute(f"SET search_path TO {quote_ident(schema)}, public")
        return None

    @staticmethod
    def _postgres_failure(config: PostgreSQLConfig, error: BaseException) -> ConnectionTestResult:
        if _is_unknown_database(error):
            return ConnectionTestResult.failure(
                error=f"Connection failed: {error}",
                error_type=ErrorType.PERMISSIONS,
                suggestions=[
                    f"Verify that database '{config.database}' exists",
                    "Check that the database name is spelled correctly",
                    "Ensure the user has access to the database",
                ],
            )

        error_type = _classify_postgres_error(error)
        message = str(error) or type(error).__name__
        return ConnectionTestResult.failure(
            error=f"Connection failed: {message}",
            error_type=error_type,
            suggestions=get_suggestions(DatabaseType.POSTGRESQL, error_type),
        )
