"""
Fixed schema required by the authentication and audit subsystems.

Six tables plus two indexes on ``activity``. Both dialects share the same
logical columns and constraints; they differ only in type names (SQLite
stores flags as INTEGER and timestamps as epoch integers) and in quoting of
``user``, which is reserved on PostgreSQL.

Every statement is ``IF NOT EXISTS`` so applying the schema is idempotent.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from provisioner.db.adapters import quote_ident
from provisioner.models.database import DatabaseType

# Creation order follows foreign-key dependencies
REQUIRED_TABLES: Tuple[str, ...] = (
    "user",
    "session",
    "account",
    "verification",
    "two_factor",
    "activity",
)

# Child tables first so deletes never trip a foreign key
CLEAR_ORDER: Tuple[str, ...] = tuple(reversed(REQUIRED_TABLES))


SQLITE_TABLES: Dict[str, str] = {
    "user": """
        CREATE TABLE IF NOT EXISTS user (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            email_verified INTEGER NOT NULL DEFAULT 0,
            name TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            banned INTEGER NOT NULL DEFAULT 0,
            ban_reason TEXT,
            ban_expires INTEGER,
            two_factor_enabled INTEGER DEFAULT 0,
            image TEXT
        )
    """,
    "session": """
        CREATE TABLE IF NOT EXISTS session (
            id TEXT PRIMARY KEY,
            expires_at INTEGER NOT NULL,
            token TEXT NOT NULL UNIQUE,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            ip_address TEXT,
            user_agent TEXT,
            user_id TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES user(id) ON DELETE CASCADE
        )
    """,
    "account": """
        CREATE TABLE IF NOT EXISTS account (
            id TEXT PRIMARY KEY,
            account_id TEXT NOT NULL,
            provider_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            access_token TEXT,
            refresh_token TEXT,
            id_token TEXT,
            access_token_expires_at INTEGER,
            refresh_token_expires_at INTEGER,
            scope TEXT,
            password TEXT,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            FOREIGN KEY (user_id) REFERENCES user(id) ON DELETE CASCADE
        )
    """,
    "verification": """
        CREATE TABLE IF NOT EXISTS verification (
            id TEXT PRIMARY KEY,
            identifier TEXT NOT NULL,
            value TEXT NOT NULL,
            expires_at INTEGER NOT NULL,
            created_at INTEGER,
            updated_at INTEGER
        )
    """,
    "two_factor": """
        CREATE TABLE IF NOT EXISTS two_factor (
            id TEXT PRIMARY KEY,
            secret TEXT NOT NULL,
            backup_codes TEXT NOT NULL,
            user_id TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (user_id) REFERENCES user(id) ON DELETE CASCADE
        )
    """,
    "activity": """
        CREATE TABLE IF NOT EXISTS activity (
            id TEXT PRIMARY KEY,
            action TEXT NOT NULL,
            user TEXT NOT NULL,
            target TEXT,
            type TEXT NOT NULL,
            metadata TEXT,
            timestamp TEXT NOT NULL DEFAULT (datetime('now')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """,
}

SQLITE_INDEXES: Tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_activity_timestamp ON activity(timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_activity_user ON activity(user)",
)


POSTGRES_TABLES: Dict[str, str] = {
    "user": """
        CREATE TABLE IF NOT EXISTS "user" (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            email_verified BOOLEAN NOT NULL DEFAULT FALSE,
            name TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            banned BOOLEAN NOT NULL DEFAULT FALSE,
            ban_reason TEXT,
            ban_expires TIMESTAMP,
            two_factor_enabled BOOLEAN DEFAULT FALSE,
            image TEXT
        )
    """,
    "session": """
        CREATE TABLE IF NOT EXISTS session (
            id TEXT PRIMARY KEY,
            expires_at TIMESTAMP NOT NULL,
            token TEXT NOT NULL UNIQUE,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            ip_address TEXT,
            user_agent TEXT,
            user_id TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES "user"(id) ON DELETE CASCADE
        )
    """,
    "account": """
        CREATE TABLE IF NOT EXISTS account (
            id TEXT PRIMARY KEY,
            account_id TEXT NOT NULL,
            provider_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            access_token TEXT,
            refresh_token TEXT,
            id_token TEXT,
            access_token_expires_at TIMESTAMP,
            refresh_token_expires_at TIMESTAMP,
            scope TEXT,
            password TEXT,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY (user_id) REFERENCES "user"(id) ON DELETE CASCADE
        )
    """,
    "verification": """
        CREATE TABLE IF NOT EXISTS verification (
            id TEXT PRIMARY KEY,
            identifier TEXT NOT NULL,
            value TEXT NOT NULL,
            expires_at TIMESTAMP NOT NULL,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
    """,
    "two_factor": """
        CREATE TABLE IF NOT EXISTS two_factor (
            id TEXT PRIMARY KEY,
            secret TEXT NOT NULL,
            backup_codes TEXT NOT NULL,
            user_id TEXT NOT NULL UNIQUE,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
            FOREIGN KEY (user_id) REFERENCES "user"(id) ON DELETE CASCADE
        )
    """,
    "activity": """
        CREATE TABLE IF NOT EXISTS activity (
            id TEXT PRIMARY KEY,
            action TEXT NOT NULL,
            "user" TEXT NOT NULL,
            target TEXT,
            type TEXT NOT NULL,
            metadata TEXT,
            timestamp TIMESTAMP NOT NULL DEFAULT NOW(),
            created_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
    """,
}

POSTGRES_INDEXES: Tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_activity_timestamp ON activity(timestamp DESC)",
    'CREATE INDEX IF NOT EXISTS idx_activity_user ON activity("user")',
)


_DIALECTS: Dict[DatabaseType, Tuple[Dict[str, str], Tuple[str, ...]]] = {
    DatabaseType.SQLITE: (SQLITE_TABLES, SQLITE_INDEXES),
    DatabaseType.POSTGRESQL: (POSTGRES_TABLES, POSTGRES_INDEXES),
}


@dataclass(frozen=True)
class MigrationStep:
    """One unit of schema work, logged as a single milestone pair."""
    label: str
    statements: Tuple[str, ...]
    table: Optional[str] = None


def migration_steps(db_type: DatabaseType) -> List[MigrationStep]:
    """
    Ordered schema steps for an engine.

    Args:
        db_type: Target engine

    Returns:
        One step per table in REQUIRED_TABLES order, then one for the indexes
    """
    tables, indexes = _DIALECTS[db_type]
    steps = [
        MigrationStep(label=f"{table} table", statements=(tables[table],), table=table)
        for table in REQUIRED_TABLES
    ]
    steps.append(MigrationStep(label="indexes", statements=indexes))
    return steps


def table_ref(db_type: DatabaseType, table: str) -> str:
    """Table name as it must appear in SQL for the given engine."""
    if db_type == DatabaseType.POSTGRESQL:
        return quote_ident(table)
    return table
