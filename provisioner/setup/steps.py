"""
Setup wizard step handlers.

Flow:
1. Test connection
2. Save configuration (setup_complete=False)
3. Run migrations and verify the schema
4. Admin account is created externally through an adapter
5. Complete setup

Every handler returns a JSON-ready dict for the route layer.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional

from provisioner.auth.instance import AuthInstance, get_auth_instance
from provisioner.config.settings import Settings, get_settings
from provisioner.config.store import ConfigStore
from provisioner.db.connection import DatabaseConnectionManager
from provisioner.db.migrations import MigrationManager, ProgressCallback, close_quietly
from provisioner.db.schema import CLEAR_ORDER, table_ref
from provisioner.errors import SetupAlreadyCompleteError, SetupIncompleteError
from provisioner.models.database import DatabaseType, SetupConfig, parse_database_config
from provisioner.models.results import ConnectionTestResult, ErrorType, MigrationResult
from provisioner.utils.logger import get_logger, log_setup_event

logger = get_logger(__name__)

# Journal files SQLite may leave next to the database file
SQLITE_COMPANION_SUFFIXES = ("-wal", "-shm", "-journal")

INVALID_PAYLOAD_SUGGESTIONS = [
    "Select a database type and fill in all required fields",
    "Check that the port is a number between 1 and 65535",
]


class SetupSteps:
    """Handles setup wizard steps."""

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        connection_manager: Optional[DatabaseConnectionManager] = None,
        auth_instance: Optional[AuthInstance] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or ConfigStore(settings=self.settings)
        self.connection_manager = connection_manager or DatabaseConnectionManager()
        self._auth_instance = auth_instance

    @property
    def auth_instance(self) -> AuthInstance:
        return self._auth_instance or get_auth_instance()

    def get_status(self) -> Dict[str, Any]:
        """Report whether setup is configured and complete."""
        return get_setup_status(self.store)

    async def test_connection(self, payload: Any) -> Dict[str, Any]:
        """
        Step 1: Probe a candidate configuration.

        Args:
            payload: Wizard JSON naming the engine and its settings

        Returns:
            ConnectionTestResult as a dict
        """
        config = parse_database_config(payload)
        if config is None:
            result = ConnectionTestResult.failure(
                error="Invalid database configuration",
                error_type=ErrorType.UNKNOWN,
                suggestions=INVALID_PAYLOAD_SUGGESTIONS,
            )
        else:
            result = await self.connection_manager.test_connection(config)

        log_setup_event(
            logger,
            "connection_test",
            result.success,
            database_type=config.type.value if config else None,
        )
        return result.to_dict()

    async def save_config(self, payload: Any) -> Dict[str, Any]:
        """
        Step 2: Persist a configuration with setup still incomplete.

        Editing an existing, incomplete configuration keeps its creation time.
        """
        config = parse_database_config(payload)
        if config is None:
            return {"success": False, "error": "Invalid database configuration"}

        try:
            existing = self.store.load()
        except Exception as e:
            # A corrupt or undecryptable document is replaced
            logger.warning("existing_config_unreadable", error=str(e))
            existing = None

        if existing is not None and existing.setup_complete:
            return {"success": False, "error": SetupAlreadyCompleteError().message}

        setup_config = SetupConfig.create(config)
        if existing is not None:
            setup_config.created_at = existing.created_at

        try:
            self.store.save(setup_config)
        except Exception as e:
            log_setup_event(logger, "save_config", False, error=str(e))
            return {"success": False, "error": f"Failed to save configuration: {e}"}

        await self.auth_instance.reset_instance()
        log_setup_event(logger, "save_config", True, database_type=config.type.value)
        return {"success": True, "message": "Configuration saved"}

    async def run_migrations(
        self,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Step 3: Create and verify the schema for the saved configuration.

        Returns:
            MigrationResult as a dict, including the progress transcript
        """
        try:
            config = self.store.load()
        except Exception as e:
            return MigrationResult(success=False, error=f"Failed to load configuration: {e}").to_dict()

        if config is None:
            return MigrationResult(
                success=False,
                error="Database not configured. Save a configuration first.",
            ).to_dict()

        manager = MigrationManager(
            config.database_config,
            progress_callback=progress_callback,
            connection_manager=self.connection_manager,
        )
        result = await manager.run_migrations()
        log_setup_event(
            logger,
            "migrations",
            result.success,
            tables_created=result.tables_created,
            failed_table=result.failed_table,
        )
        return result.to_dict()

    async def complete_setup(self) -> Dict[str, Any]:
        """
        Step 5: Flip setup to complete.

        Requires a verified schema and at least one admin user.
        """
        try:
            config = self.store.load()
        except Exception as e:
            return {"success": False, "error": f"Failed to load configuration: {e}"}

        if config is None:
            return {"success": False, "error": "Database not configured"}
        if config.setup_complete:
            return {"success": True, "alreadyComplete": True}

        db_config = config.database_config
        manager = MigrationManager(db_config, connection_manager=self.connection_manager)
        if not await manager.verify_schema():
            return {"success": False, "error": "Database schema is incomplete. Run migrations first."}

        adapter = None
        try:
            adapter = await self.connection_manager.create_adapter(db_config)
            admin_count = await adapter.fetchval(
                f"SELECT COUNT(*) FROM {table_ref(db_config.type, 'user')} WHERE role = ?",
                ("admin",),
            )
        except Exception as e:
            return {"success": False, "error": f"Failed to check for an admin user: {e}"}
        finally:
            await close_quietly(adapter)

        if not admin_count:
            return {"success": False, "error": "Create an admin user before completing setup"}

        try:
            self.store.save(config.mark_complete())
        except Exception as e:
            log_setup_event(logger, "complete", False, error=str(e))
            return {"success": False, "error": f"Failed to save configuration: {e}"}

        await self.auth_instance.reset_instance()
        log_setup_event(logger, "complete", True, database_type=db_config.type.value)
        return {"success": True}

    async def reset_setup(self) -> Dict[str, Any]:
        """
        Clear application data and the configuration.

        Table clearing and data file removal are best effort; only failing to
        delete the configuration document fails the reset.
        """
        try:
            config = self.store.load()
        except Exception as e:
            logger.warning("reset_config_unreadable", error=str(e))
            config = None

        cleared: List[str] = []
        if config is not None:
            cleared = await self._clear_tables(config)
        else:
            logger.info("reset_no_config", detail="skipping data cleanup")

        await self.auth_instance.reset_instance()

        try:
            self.store.reset()
        except Exception as e:
            log_setup_event(logger, "reset", False, error=str(e))
            return {"success": False, "error": f"Failed to reset configuration: {e}"}

        removed: List[str] = []
        if config is not None and config.database_config.type == DatabaseType.SQLITE:
            removed = _remove_sqlite_files(config.database_config.sqlite.file_path)

        log_setup_event(logger, "reset", True, tables_cleared=cleared, files_removed=removed)
        return {
            "success": True,
            "message": "Setup has been reset",
            "tablesCleared": cleared,
            "filesRemoved": removed,
        }

    async def _clear_tables(self, config: SetupConfig) -> List[str]:
        db_config = config.database_config
        cleared: List[str] = []
        adapter = None
        try:
            adapter = await self.connection_manager.create_adapter(db_config)
            for table in CLEAR_ORDER:
                try:
                    await adapter.execute(f"DELETE FROM {table_ref(db_config.type, table)}")
                    cleared.append(table)
                except Exception as e:
                    logger.warning("reset_table_skipped", table=table, error=str(e))
        except Exception as e:
            logger.warning("reset_data_not_cleared", error=str(e))
        finally:
            await close_quietly(adapter)
        return cleared


def _remove_sqlite_files(file_path: str) -> List[str]:
    """Delete the SQLite database and its companion files."""
    base = Path(file_path).resolve()
    removed: List[str] = []
    for path in [base] + [Path(f"{base}{suffix}") for suffix in SQLITE_COMPANION_SUFFIXES]:
        try:
            path.unlink()
            removed.append(str(path))
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("reset_file_not_removed", path=str(path), error=str(e))
    return removed


def get_setup_status(store: ConfigStore) -> Dict[str, Any]:
    """Setup status for the wizard; never raises."""
    try:
        config = store.load()
    except Exception as e:
        logger.warning("setup_status_unavailable", error=str(e))
        return {"setupComplete": False, "configured": False, "databaseType": None, "error": str(e)}

    if config is None:
        return {"setupComplete": False, "configured": False, "databaseType": None}

    return {
        "setupComplete": config.setup_complete,
        "configured": True,
        "databaseType": config.database_config.type.value,
    }


def require_setup_complete(store: ConfigStore) -> None:
    """
    Gate protected functionality on a finished setup.

    Raises:
        SetupIncompleteError: If setup has not finished
    """
    if not store.is_setup_complete():
        raise SetupIncompleteError()


def require_setup_incomplete(store: ConfigStore) -> None:
    """
    Gate the setup wizard once setup has finished.

    Raises:
        SetupAlreadyCompleteError: If setup is already complete
    """
    if store.is_setup_complete():
        raise SetupAlreadyCompleteError()
