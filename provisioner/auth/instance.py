"""
Re-initialisable handle to the database backing the authentication service.

The handle is built lazily from a freshly loaded setup configuration and
discarded whenever that configuration changes, so the next request picks up
the new database.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from provisioner.config.store import ConfigStore
from provisioner.db.connection import DatabaseConnectionManager
from provisioner.errors import SetupIncompleteError
from provisioner.models.database import SetupConfig
from provisioner.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AuthContext:
    """Live state handed to the authentication service."""
    config: SetupConfig
    adapter: Any


@dataclass
class InitResult:
    """Outcome of ``AuthInstance.get_or_init``."""
    ok: bool
    context: Optional[AuthContext] = None
    error: Optional[Exception] = None


class AuthInstance:
    """Lazily created, explicitly resettable auth database handle."""

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        connection_manager: Optional[DatabaseConnectionManager] = None,
    ):
        self._store = store
        self.connection_manager = connection_manager or DatabaseConnectionManager()
        self._context: Optional[AuthContext] = None
        self._lock = asyncio.Lock()

    @property
    def store(self) -> ConfigStore:
        if self._store is None:
            self._store = ConfigStore()
        return self._store

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    async def get_or_init(self) -> InitResult:
        """
        Return the current context, creating it on first use.

        Never raises. When setup has not finished, the result carries a
        SetupIncompleteError instead of a context.
        """
        async with self._lock:
            if self._context is not None:
                return InitResult(ok=True, context=self._context)

            try:
                config = self.store.load()
                if config is None or not config.setup_complete:
                    return InitResult(ok=False, error=SetupIncompleteError())

                adapter = await self.connection_manager.create_adapter(config.database_config)
                self._context = AuthContext(config=config, adapter=adapter)
                logger.info("auth_instance_initialized", database_type=config.database_config.type.value)
                return InitResult(ok=True, context=self._context)
            except Exception as e:
                logger.error("auth_instance_init_failed", error=str(e))
                return InitResult(ok=False, error=e)

    async def reset_instance(self) -> None:
        """Close and discard the current context; the next call rebuilds it."""
        async with self._lock:
            context, self._context = self._context, None
            if context is None:
                return
            try:
                await context.adapter.close()
            except Exception as e:
                logger.warning("auth_instance_close_failed", error=str(e))
            logger.info("auth_instance_reset")


# Global instance
_auth_instance: Optional[AuthInstance] = None


def get_auth_instance() -> AuthInstance:
    """Get the process-wide auth instance handle."""
    global _auth_instance
    if _auth_instance is None:
        _auth_instance = AuthInstance()
    return _auth_instance


async def reset_auth_instance() -> None:
    """Reset the process-wide handle so its next use reloads the configuration."""
    global _auth_instance
    if _auth_instance is not None:
        await _auth_instance.reset_instance()
