"""
Tests for database configuration and result models.
"""
import pytest
from pydantic import ValidationError

from provisioner.models import (
    ConnectionTestResult,
    DatabaseConfig,
    DatabaseType,
    ErrorType,
    MigrationResult,
    PostgreSQLConfig,
    SetupConfig,
    SQLiteConfig,
    parse_database_config,
)


class TestDatabaseConfig:
    """Tests for the tagged union."""

    def test_sqlite_factory(self):
        config = DatabaseConfig.for_sqlite("./data/auth.db")

        assert config.type == DatabaseType.SQLITE
        assert config.sqlite.file_path == "./data/auth.db"
        assert config.postgresql is None

    def test_postgresql_defaults(self):
        config = DatabaseConfig.for_postgresql(host="h", database="d", username="u")

        assert config.postgresql.port == 5432
        assert config.postgresql.password == ""
        assert config.postgresql.db_schema is None
        assert config.postgresql.ssl is False

    def test_missing_payload_rejected(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(type=DatabaseType.SQLITE)

    def test_mismatched_payload_rejected(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(
                type=DatabaseType.SQLITE,
                postgresql=PostgreSQLConfig(host="h", database="d", username="u"),
            )

    def test_both_payloads_rejected(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(
                type=DatabaseType.POSTGRESQL,
                sqlite=SQLiteConfig(file_path="a.db"),
                postgresql=PostgreSQLConfig(host="h", database="d", username="u"),
            )

    def test_accepts_camel_case(self):
        config = DatabaseConfig.model_validate({
            "type": "postgresql",
            "postgresql": {
                "host": "h", "database": "d", "username": "u", "schema": "auth",
            },
        })

        assert config.postgresql.db_schema == "auth"

    def test_to_dict_uses_wire_names(self):
        config = DatabaseConfig.for_postgresql(
            host="h", database="d", username="u", db_schema="auth",
        )

        data = config.to_dict()

        assert data["type"] == "postgresql"
        assert data["postgresql"]["schema"] == "auth"
        assert "sqlite" not in data


class TestValidationErrors:
    """Tests for validation_errors / is_valid."""

    def test_valid_sqlite(self):
        assert DatabaseConfig.for_sqlite("a.db").is_valid

    def test_blank_file_path(self):
        config = DatabaseConfig.for_sqlite("  ")

        assert config.validation_errors() == ["file path must not be empty"]

    def test_blank_postgres_fields(self):
        config = DatabaseConfig.for_postgresql(host="", database=" ", username="")

        problems = config.validation_errors()

        assert len(problems) == 3
        assert not config.is_valid

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_port_out_of_range(self, port):
        config = DatabaseConfig.for_postgresql(host="h", database="d", username="u", port=port)

        assert any("port" in p for p in config.validation_errors())

    @pytest.mark.parametrize("port", [1, 5432, 65535])
    def test_port_in_range(self, port):
        config = DatabaseConfig.for_postgresql(host="h", database="d", username="u", port=port)

        assert config.is_valid


class TestSetupConfig:
    """Tests for the persisted document model."""

    def test_create_is_incomplete(self, sqlite_config):
        config = SetupConfig.create(sqlite_config)

        assert config.setup_complete is False
        assert config.created_at == config.updated_at

    def test_mark_complete_returns_copy(self, sqlite_config):
        config = SetupConfig.create(sqlite_config)

        completed = config.mark_complete()

        assert completed.setup_complete is True
        assert config.setup_complete is False
        assert completed.created_at == config.created_at
        assert completed.updated_at >= config.updated_at

    def test_to_dict_wire_names(self, sqlite_config):
        data = SetupConfig.create(sqlite_config).to_dict()

        assert set(data) == {"setupComplete", "databaseConfig", "createdAt", "updatedAt"}
        assert data["databaseConfig"]["sqlite"]["filePath"].endswith("auth.db")


class TestParseDatabaseConfig:
    """Tests for parse_database_config."""

    def test_sqlite_payload(self):
        config = parse_database_config({"type": "sqlite", "sqlite": {"filePath": "./data/auth.db"}})

        assert config.type == DatabaseType.SQLITE

    def test_drops_unselected_variant(self):
        config = parse_database_config({
            "type": "sqlite",
            "sqlite": {"filePath": "./data/auth.db"},
            "postgresql": {"host": "h", "database": "d", "username": "u"},
        })

        assert config.postgresql is None

    def test_postgres_payload(self):
        config = parse_database_config({
            "type": "postgresql",
            "postgresql": {
                "host": "localhost", "port": 5433, "database": "app",
                "username": "app", "password": "pw", "ssl": True,
            },
        })

        assert config.postgresql.port == 5433
        assert config.postgresql.ssl is True

    @pytest.mark.parametrize("payload", [
        None,
        "sqlite",
        {},
        {"type": "mysql"},
        {"type": "sqlite"},
        {"type": "sqlite", "sqlite": {"filePath": ""}},
        {"type": "postgresql", "postgresql": {"host": "h", "database": "d", "username": "u", "port": 70000}},
        {"type": "postgresql", "postgresql": {"host": "h"}},
    ])
    def test_invalid_payloads(self, payload):
        assert parse_database_config(payload) is None


class TestResults:
    """Tests for result value objects."""

    def test_connection_ok(self):
        assert ConnectionTestResult.ok().to_dict() == {"success": True}

    def test_connection_failure_wire_format(self):
        result = ConnectionTestResult.failure("refused", ErrorType.NETWORK, ["check host"])

        assert result.to_dict() == {
            "success": False,
            "error": "refused",
            "errorType": "network",
            "suggestions": ["check host"],
        }

    def test_migration_result_wire_format(self):
        result = MigrationResult(
            success=False,
            error="boom",
            failed_table="session",
            progress=["Starting database migration..."],
        )

        data = result.to_dict()

        assert data["failedTable"] == "session"
        assert data["progress"] == ["Starting database migration..."]
        assert "tablesCreated" not in data
