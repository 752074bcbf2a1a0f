"""
Applies and verifies the fixed authentication schema.

Application is idempotent and runs in a fixed order; the first failing step
aborts the run. Tables created before the failure are left in place, and a
retry picks up where the previous run stopped.

Usage:
    manager = MigrationManager(config, progress_callback=print)
    result = await manager.run_migrations()
    if not result.success:
        print(result.error, result.failed_table)
"""
from typing import Callable, List, Optional

from provisioner.db.connection import DatabaseConnectionManager
from provisioner.db.schema import REQUIRED_TABLES, migration_steps
from provisioner.models.database import DatabaseConfig, DatabaseType
from provisioner.models.results import MigrationResult
from provisioner.utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]

ENGINE_LABELS = {
    DatabaseType.SQLITE: "SQLite",
    DatabaseType.POSTGRESQL: "PostgreSQL",
}


async def close_quietly(adapter) -> None:
    """Close an adapter, logging rather than raising on failure."""
    if adapter is None:
        return
    try:
        await adapter.close()
    except Exception as e:
        logger.warning("adapter_close_failed", error=str(e))


class MigrationManager:
    """
    Creates the required tables and indexes for one database configuration.

    Each milestone is appended to the run's transcript and, if given, passed
    to ``progress_callback`` synchronously and in order.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        progress_callback: Optional[ProgressCallback] = None,
        connection_manager: Optional[DatabaseConnectionManager] = None,
    ):
        self.config = config
        self.progress_callback = progress_callback
        self.connection_manager = connection_manager or DatabaseConnectionManager()

    def _log_progress(self, message: str, progress: List[str]) -> None:
        progress.append(message)
        logger.info("migration_progress", message=message)
        if self.progress_callback:
            self.progress_callback(message)

    def _describe_target(self) -> str:
        if self.config.type == DatabaseType.SQLITE:
            return f"Connecting to SQLite database at {self.config.sqlite.file_path}..."
        pg = self.config.postgresql
        return f"Connecting to PostgreSQL database at {pg.host}:{pg.port}..."

    async def run_migrations(self) -> MigrationResult:
        """
        Apply the schema, then verify it.

        Returns:
            MigrationResult with the full progress transcript; never raises
        """
        progress: List[str] = []

        try:
            self._log_progress("Starting database migration...", progress)

            result = await self._apply_schema(progress)
            if not result.success:
                return result

            self._log_progress("Verifying schema...", progress)
            if not await self.verify_schema():
                return MigrationResult(
                    success=False,
                    error="Schema verification failed",
                    progress=progress,
                )

            self._log_progress("Migration completed successfully!", progress)
            return MigrationResult(
                success=True,
                tables_created=result.tables_created,
                progress=progress,
            )
        except Exception as e:
            logger.error("migration_failed", error=str(e))
            # Not routed through the callback, which may be what failed
            progress.append(f"Migration failed: {e}")
            return MigrationResult(
                success=False,
                error=str(e) or "Unknown error occurred during migration",
                progress=progress,
            )

    async def _apply_schema(self, progress: List[str]) -> MigrationResult:
        engine = ENGINE_LABELS[self.config.type]
        tables_created: List[str] = []
        current_table: Optional[str] = None
        adapter = None

        try:
            self._log_progress(self._describe_target(), progress)
            adapter = await self.connection_manager.create_adapter(self.config)

            for step in migration_steps(self.config.type):
                current_table = step.table
                self._log_progress(f"Creating {step.label}...", progress)
                for statement in step.statements:
                    await adapter.execute(statement)
                if step.table:
                    tables_created.append(step.table)
                self._log_progress(f"✓ {step.label[0].upper()}{step.label[1:]} created", progress)

            return MigrationResult(success=True, tables_created=tables_created, progress=progress)
        except Exception as e:
            self._log_progress(f"Error: {e}", progress)
            logger.error(
                "migration_step_failed",
                database_type=self.config.type.value,
                table=current_table,
                error=str(e),
            )
            return MigrationResult(
                success=False,
                error=f"{engine} migration failed: {e}",
                failed_table=current_table,
                progress=progress,
            )
        finally:
            await close_quietly(adapter)

    async def verify_schema(self) -> bool:
        """
        Check that every required table exists.

        Opens and closes its own adapter. Any error counts as a failed
        verification.
        """
        adapter = None
        try:
            adapter = await self.connection_manager.create_adapter(self.config)
            for table in REQUIRED_TABLES:
                if not await adapter.table_exists(table):
                    logger.warning("schema_table_missing", table=table)
                    return False
            return True
        except Exception as e:
            logger.error("schema_verification_failed", error=str(e))
            return False
        finally:
            await close_quietly(adapter)
