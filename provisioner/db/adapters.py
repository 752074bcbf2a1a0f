"""
Live database adapters for the two supported engines.

Both adapters expose the same async query surface (execute, fetchone,
fetchall, fetchval, table_exists, transaction) so callers can stay
engine-agnostic. Adapters are owned by whoever created them and must be
closed by that caller.
"""

import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import aiosqlite
import asyncpg

from provisioner.models.database import DatabaseType, PostgreSQLConfig

SQLITE_BUSY_TIMEOUT = 5.0  # seconds

# Pool sizing for long-lived PostgreSQL adapters
POOL_MAX_SIZE = 20
POOL_IDLE_LIFETIME = 30.0  # seconds before idle connections are closed
CONNECT_TIMEOUT = 5.0  # seconds


def quote_ident(name: str) -> str:
    """Quote an SQL identifier, escaping embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def postgres_connect_kwargs(config: PostgreSQLConfig) -> Dict[str, Any]:
    """Connection keyword arguments shared by probes and adapters."""
    return {
        "host": config.host,
        "port": config.port,
        "database": config.database,
        "user": config.username,
        "password": config.password,
        # Encrypt without certificate verification, matching typical managed setups
        "ssl": "require" if config.ssl else False,
    }


class SQLiteAdapter:
    """Async SQLite wrapper with foreign keys enforced."""

    type = DatabaseType.SQLITE

    def __init__(self, db_path: str, timeout: float = SQLITE_BUSY_TIMEOUT):
        self.db_path = os.path.abspath(db_path)
        self.timeout = timeout
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Open the database file, creating it and its directory if needed."""
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)

        # isolation_level=None: autocommit, explicit BEGIN in transaction()
        self._connection = await aiosqlite.connect(
            self.db_path, timeout=self.timeout, isolation_level=None
        )
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys=ON")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _ensure_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def execute(self, query: str, parameters: tuple = ()) -> None:
        """Execute a statement."""
        conn = self._ensure_connection()
        await conn.execute(query, parameters)

    async def fetchone(self, query: str, parameters: tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch a single row."""
        conn = self._ensure_connection()
        async with conn.execute(query, parameters) as cursor:
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetchall(self, query: str, parameters: tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows."""
        conn = self._ensure_connection()
        async with conn.execute(query, parameters) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def fetchval(self, query: str, parameters: tuple = ()) -> Any:
        """Fetch a single value."""
        row = await self.fetchone(query, parameters)
        if row:
            return next(iter(row.values()))
        return None

    async def table_exists(self, table: str, schema: Optional[str] = None) -> bool:
        """Check the catalog for a table (schema is ignored on SQLite)."""
        name = await self.fetchval(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        )
        return name is not None

    @asynccontextmanager
    async def transaction(self):
        """Transaction context manager."""
        conn = self._ensure_connection()
        await conn.execute("BEGIN")
        try:
            yield self
            await conn.execute("COMMIT")
        except Exception:
            await conn.execute("ROLLBACK")
            raise

    async def __aenter__(self) -> "SQLiteAdapter":
        if self._connection is None:
            await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class PostgresAdapter:
    """Async PostgreSQL wrapper around a bounded asyncpg pool."""

    type = DatabaseType.POSTGRESQL

    def __init__(self, config: PostgreSQLConfig, max_size: int = POOL_MAX_SIZE):
        self.config = config
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def schema(self) -> str:
        return self.config.db_schema or "public"

    def pool_options(self) -> Dict[str, Any]:
        """Options passed to asyncpg.create_pool."""
        options = postgres_connect_kwargs(self.config)
        options.update(
            # min_size=0: connections open on first use, not at creation
            min_size=0,
            max_size=self.max_size,
            max_inactive_connection_lifetime=POOL_IDLE_LIFETIME,
            timeout=CONNECT_TIMEOUT,
        )
        if self.config.db_schema:
            options["server_settings"] = {
                "search_path": f"{quote_ident(self.config.db_schema)},public"
            }
        return options

    async def connect(self) -> None:
        """Create the connection pool."""
        self._pool = await asyncpg.create_pool(**self.pool_options())

    async def close(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    def _ensure_pool(self) -> asyncpg.Pool:
        """Return pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    # ------------------------------------------------------------------
    # Query helpers accept ? placeholders and convert them to $N so
    # engine-agnostic callers can share statements.
    # ------------------------------------------------------------------

    @staticmethod
    def _convert_placeholders(query: str) -> str:
        """Convert ? placeholders to $1, $2, ... for asyncpg."""
        parts: List[str] = []
        idx = 0
        i = 0
        while i < len(query):
            ch = query[i]
            if ch == '?':
                idx += 1
                parts.append(f'${idx}')
            elif ch == "'" or ch == '"':
                # skip quoted strings and identifiers
                quote = ch
                parts.append(ch)
                i += 1
                while i < len(query) and query[i] != quote:
                    parts.append(query[i])
                    i += 1
                if i < len(query):
                    parts.append(query[i])
            else:
                parts.append(ch)
            i += 1
        return ''.join(parts)

    async def execute(self, query: str, parameters: tuple = ()) -> str:
        """Execute a statement. Returns status string."""
        async with self._acquire() as conn:
            return await conn.execute(query, parameters)

    async def fetchone(self, query: str, parameters: tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch a single row as dict."""
        async with self._acquire() as conn:
            return await conn.fetchone(query, parameters)

    async def fetchall(self, query: str, parameters: tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows as list of dicts."""
        async with self._acquire() as conn:
            return await conn.fetchall(query, parameters)

    async def fetchval(self, query: str, parameters: tuple = ()) -> Any:
        """Fetch a single value."""
        async with self._acquire() as conn:
            return await conn.fetchval(query, parameters)

    async def table_exists(self, table: str, schema: Optional[str] = None) -> bool:
        """Check information_schema for a table in the configured schema."""
        async with self._acquire() as conn:
            return await conn.table_exists(table, schema)

    @asynccontextmanager
    async def _acquire(self):
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            yield _PostgresConnection(conn, self.schema)

    @asynccontextmanager
    async def transaction(self):
        """Transaction context manager using a dedicated connection."""
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield _PostgresConnection(conn, self.schema)

    async def __aenter__(self) -> "PostgresAdapter":
        if self._pool is None:
            await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class _PostgresConnection:
    """
    Query surface over one asyncpg connection.

    Yielded by `transaction()` so code inside `async with adapter.transaction() as tx:`
    sees the same methods as the adapter itself.
    """

    def __init__(self, conn: asyncpg.Connection, schema: str):
        self._conn = conn
        self.schema = schema

    async def execute(self, query: str, parameters: tuple = ()) -> str:
        q = PostgresAdapter._convert_placeholders(query)
        return await self._conn.execute(q, *parameters)

    async def fetchone(self, query: str, parameters: tuple = ()) -> Optional[Dict[str, Any]]:
        q = PostgresAdapter._convert_placeholders(query)
        row = await self._conn.fetchrow(q, *parameters)
        return dict(row) if row else None

    async def fetchall(self, query: str, parameters: tuple = ()) -> List[Dict[str, Any]]:
        q = PostgresAdapter._convert_placeholders(query)
        rows = await self._conn.fetch(q, *parameters)
        return [dict(r) for r in rows]

    async def fetchval(self, query: str, parameters: tuple = ()) -> Any:
        q = PostgresAdapter._convert_placeholders(query)
        return await self._conn.fetchval(q, *parameters)

    async def table_exists(self, table: str, schema: Optional[str] = None) -> bool:
        name = await self.fetchval(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = ? AND table_name = ?",
            (schema or self.schema, table),
        )
        return name is not None
