"""
Database configuration models.

The wire format (wizard payloads and the persisted document) uses camelCase
keys; attributes are snake_case and both spellings are accepted on input.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

MIN_PORT = 1
MAX_PORT = 65535


class DatabaseType(str, Enum):
    """Supported database engines."""
    SQLITE = "sqlite"  # embedded, single local file
    POSTGRESQL = "postgresql"  # client-server


class SQLiteConfig(BaseModel):
    """Embedded engine settings."""

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")


class PostgreSQLConfig(BaseModel):
    """Client-server engine settings."""

    model_config = ConfigDict(populate_by_name=True)

    host: str
    port: int = 5432
    database: str
    username: str
    password: str = ""
    db_schema: Optional[str] = Field(default=None, alias="schema")
    ssl: bool = False


class DatabaseConfig(BaseModel):
    """
    Tagged union of engine settings.

    Exactly one payload is populated and it matches ``type``.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: DatabaseType
    sqlite: Optional[SQLiteConfig] = None
    postgresql: Optional[PostgreSQLConfig] = None

    @model_validator(mode="after")
    def _check_variant(self) -> "DatabaseConfig":
        if self.type == DatabaseType.SQLITE:
            if self.sqlite is None or self.postgresql is not None:
                raise ValueError("sqlite configuration requires exactly the 'sqlite' payload")
        elif self.type == DatabaseType.POSTGRESQL:
            if self.postgresql is None or self.sqlite is not None:
                raise ValueError("postgresql configuration requires exactly the 'postgresql' payload")
        return self

    @classmethod
    def for_sqlite(cls, file_path: str) -> "DatabaseConfig":
        return cls(type=DatabaseType.SQLITE, sqlite=SQLiteConfig(file_path=file_path))

    @classmethod
    def for_postgresql(cls, **kwargs: Any) -> "DatabaseConfig":
        return cls(type=DatabaseType.POSTGRESQL, postgresql=PostgreSQLConfig(**kwargs))

    def validation_errors(self) -> List[str]:
        """Return a list of problems (empty if the config is usable)."""
        problems: List[str] = []

        if self.type == DatabaseType.SQLITE:
            if not self.sqlite.file_path.strip():
                problems.append("file path must not be empty")
            return problems

        pg = self.postgresql
        if not pg.host.strip():
            problems.append("host must not be empty")
        if not pg.database.strip():
            problems.append("database must not be empty")
        if not pg.username.strip():
            problems.append("username must not be empty")
        if not MIN_PORT <= pg.port <= MAX_PORT:
            problems.append(f"port must be between {MIN_PORT} and {MAX_PORT}")
        return problems

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SetupConfig(BaseModel):
    """Persisted setup document."""

    model_config = ConfigDict(populate_by_name=True)

    setup_complete: bool = Field(default=False, alias="setupComplete")
    database_config: DatabaseConfig = Field(alias="databaseConfig")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    @classmethod
    def create(cls, database_config: DatabaseConfig) -> "SetupConfig":
        """Create a fresh, incomplete setup document."""
        now = _utcnow()
        return cls(
            setup_complete=False,
            database_config=database_config,
            created_at=now,
            updated_at=now,
        )

    def mark_complete(self) -> "SetupConfig":
        """Return a copy flagged complete with a fresh update timestamp."""
        return self.model_copy(update={"setup_complete": True, "updated_at": _utcnow()})

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def parse_database_config(payload: Any) -> Optional[DatabaseConfig]:
    """
    Parse a wizard payload into a validated DatabaseConfig.

    The payload names the engine in ``type`` and carries its settings under
    the matching key; any other variant is dropped.

    Returns:
        DatabaseConfig, or None if the payload is malformed or invalid
    """
    if not isinstance(payload, dict):
        return None

    db_type = payload.get("type")
    if db_type not in (DatabaseType.SQLITE.value, DatabaseType.POSTGRESQL.value):
        return None

    try:
        config = DatabaseConfig.model_validate({
            "type": db_type,
            db_type: payload.get(db_type),
        })
    except ValidationError:
        return None

    if not config.is_valid:
        return None

    return config
