"""
Tests for the SQLite and PostgreSQL adapters.

SQLite runs against real files; PostgreSQL is exercised with a mocked pool.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from provisioner.db.adapters import (
    POOL_IDLE_LIFETIME,
    POOL_MAX_SIZE,
    PostgresAdapter,
    SQLiteAdapter,
    postgres_connect_kwargs,
    quote_ident,
)
from provisioner.models.database import DatabaseType, PostgreSQLConfig


def _mock_pool(conn):
    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()
    return pool


class TestHelpers:

    def test_quote_ident(self):
        assert quote_ident("user") == '"user"'
        assert quote_ident('we"ird') == '"we""ird"'

    def test_connect_kwargs(self):
        config = PostgreSQLConfig(host="h", port=6543, database="d", username="u", password="p")

        kwargs = postgres_connect_kwargs(config)

        assert kwargs == {
            "host": "h", "port": 6543, "database": "d",
            "user": "u", "password": "p", "ssl": False,
        }

    def test_connect_kwargs_ssl(self):
        config = PostgreSQLConfig(host="h", database="d", username="u", ssl=True)

        assert postgres_connect_kwargs(config)["ssl"] == "require"


class TestSQLiteAdapter:
    """Tests against a real SQLite file."""

    @pytest.mark.asyncio
    async def test_creates_directory_and_file(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "app.db"

        async with SQLiteAdapter(str(db_path)) as adapter:
            assert adapter.is_connected
            assert adapter.type == DatabaseType.SQLITE

        assert db_path.exists()
        assert not adapter.is_connected

    @pytest.mark.asyncio
    async def test_query_helpers(self, tmp_path):
        async with SQLiteAdapter(str(tmp_path / "app.db")) as adapter:
            await adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, name TEXT)")
            await adapter.execute("INSERT INTO item (name) VALUES (?)", ("a",))
            await adapter.execute("INSERT INTO item (name) VALUES (?)", ("b",))

            assert await adapter.fetchone("SELECT name FROM item WHERE id = ?", (1,)) == {"name": "a"}
            assert len(await adapter.fetchall("SELECT * FROM item")) == 2
            assert await adapter.fetchval("SELECT COUNT(*) FROM item") == 2
            assert await adapter.fetchone("SELECT * FROM item WHERE id = ?", (99,)) is None

    @pytest.mark.asyncio
    async def test_autocommit_visible_to_other_connection(self, tmp_path):
        path = str(tmp_path / "app.db")
        async with SQLiteAdapter(path) as writer:
            await writer.execute("CREATE TABLE item (id INTEGER PRIMARY KEY)")
            await writer.execute("INSERT INTO item DEFAULT VALUES")

        async with SQLiteAdapter(path) as reader:
            assert await reader.fetchval("SELECT COUNT(*) FROM item") == 1

    @pytest.mark.asyncio
    async def test_foreign_keys_enforced(self, tmp_path):
        async with SQLiteAdapter(str(tmp_path / "app.db")) as adapter:
            assert await adapter.fetchval("PRAGMA foreign_keys") == 1

    @pytest.mark.asyncio
    async def test_table_exists(self, tmp_path):
        async with SQLiteAdapter(str(tmp_path / "app.db")) as adapter:
            assert await adapter.table_exists("item") is False
            await adapter.execute("CREATE TABLE item (id INTEGER)")
            assert await adapter.table_exists("item") is True

    @pytest.mark.asyncio
    async def test_transaction_rolls_back(self, tmp_path):
        async with SQLiteAdapter(str(tmp_path / "app.db")) as adapter:
            await adapter.execute("CREATE TABLE item (id INTEGER)")

            with pytest.raises(ValueError):
                async with adapter.transaction() as tx:
                    await tx.execute("INSERT INTO item VALUES (1)")
                    raise ValueError("boom")

            assert await adapter.fetchval("SELECT COUNT(*) FROM item") == 0

            async with adapter.transaction() as tx:
                await tx.execute("INSERT INTO item VALUES (2)")

            assert await adapter.fetchval("SELECT COUNT(*) FROM item") == 1

    @pytest.mark.asyncio
    async def test_requires_connect(self, tmp_path):
        adapter = SQLiteAdapter(str(tmp_path / "app.db"))

        with pytest.raises(RuntimeError, match="not connected"):
            await adapter.execute("SELECT 1")


class TestPostgresAdapter:
    """Tests with a mocked asyncpg pool."""

    def test_pool_options(self):
        adapter = PostgresAdapter(PostgreSQLConfig(host="h", database="d", username="u"))

        options = adapter.pool_options()

        assert options["min_size"] == 0
        assert options["max_size"] == POOL_MAX_SIZE
        assert options["max_inactive_connection_lifetime"] == POOL_IDLE_LIFETIME
        assert "server_settings" not in options
        assert adapter.schema == "public"

    def test_pool_options_with_schema(self):
        adapter = PostgresAdapter(
            PostgreSQLConfig(host="h", database="d", username="u", db_schema="auth")
        )

        options = adapter.pool_options()

        assert options["server_settings"] == {"search_path": '"auth",public'}
        assert adapter.schema == "auth"

    def test_convert_placeholders(self):
        convert = PostgresAdapter._convert_placeholders

        assert convert("SELECT * FROM t WHERE a = ? AND b = ?") == "SELECT * FROM t WHERE a = $1 AND b = $2"
        assert convert("SELECT '?' FROM \"we?rd\" WHERE a = ?") == "SELECT '?' FROM \"we?rd\" WHERE a = $1"

    @pytest.mark.asyncio
    async def test_connect_and_query(self):
        conn = MagicMock()
        conn.fetchval = AsyncMock(return_value=3)
        conn.fetchrow = AsyncMock(return_value={"id": "1"})
        conn.execute = AsyncMock(return_value="DELETE 3")
        pool = _mock_pool(conn)

        with patch("provisioner.db.adapters.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            async with PostgresAdapter(PostgreSQLConfig(host="h", database="d", username="u")) as adapter:
                assert await adapter.fetchval("SELECT COUNT(*) FROM t WHERE role = ?", ("admin",)) == 3
                assert await adapter.fetchone("SELECT id FROM t") == {"id": "1"}
                assert await adapter.execute('DELETE FROM "user"') == "DELETE 3"

        create_pool.assert_awaited_once()
        conn.fetchval.assert_awaited_with("SELECT COUNT(*) FROM t WHERE role = $1", "admin")
        pool.close.assert_awaited_once()
        assert not adapter.is_connected

    @pytest.mark.asyncio
    async def test_table_exists_uses_configured_schema(self):
        conn = MagicMock()
        conn.fetchval = AsyncMock(return_value="user")
        pool = _mock_pool(conn)

        with patch("provisioner.db.adapters.asyncpg.create_pool", AsyncMock(return_value=pool)):
            adapter = PostgresAdapter(
                PostgreSQLConfig(host="h", database="d", username="u", db_schema="auth")
            )
            await adapter.connect()
            assert await adapter.table_exists("user") is True
            await adapter.close()

        args = conn.fetchval.await_args.args
        assert "information_schema.tables" in args[0]
        assert args[1:] == ("auth", "user")

    @pytest.mark.asyncio
    async def test_transaction_handle_has_full_query_surface(self):
        conn = MagicMock()
        conn.transaction.return_value.__aenter__ = AsyncMock(return_value=None)
        conn.transaction.return_value.__aexit__ = AsyncMock(return_value=False)
        conn.execute = AsyncMock(return_value="INSERT 0 1")
        conn.fetchrow = AsyncMock(return_value={"id": "1"})
        conn.fetch = AsyncMock(return_value=[{"id": "1"}, {"id": "2"}])
        conn.fetchval = AsyncMock(return_value="user")
        pool = _mock_pool(conn)

        with patch("provisioner.db.adapters.asyncpg.create_pool", AsyncMock(return_value=pool)):
            async with PostgresAdapter(PostgreSQLConfig(host="h", database="d", username="u")) as adapter:
                async with adapter.transaction() as tx:
                    assert await tx.execute("INSERT INTO t VALUES (?)", ("1",)) == "INSERT 0 1"
                    assert await tx.fetchone("SELECT id FROM t") == {"id": "1"}
                    assert await tx.fetchall("SELECT id FROM t") == [{"id": "1"}, {"id": "2"}]
                    assert await tx.table_exists("user") is True

        conn.transaction.assert_called_once()
        conn.execute.assert_awaited_with("INSERT INTO t VALUES ($1)", "1")
        assert conn.fetchval.await_args.args[1:] == ("public", "user")
