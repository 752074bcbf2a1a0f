"""
Persistent storage for the setup configuration document.

The document lives in a dedicated, non-public directory (``.data`` by
default). The PostgreSQL password is encrypted before it touches disk and
decrypted transparently on load.

Usage:
    store = ConfigStore()
    config = store.load()          # None until the operator configures
    store.save(SetupConfig.create(db_config))
    store.is_setup_complete()
    store.reset()
"""
import asyncio
import json
import os
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from provisioner.config.settings import Settings, get_settings
from provisioner.errors import ConfigCorruptError, ConfigStoreError, ConfigWriteError
from provisioner.models.database import DatabaseType, SetupConfig
from provisioner.security.encryption import SecretCipher, get_cipher, is_encrypted
from provisioner.utils.logger import get_logger

logger = get_logger(__name__)

FILE_MODE = 0o600  # owner read/write
DIR_MODE = 0o700  # owner read/write/execute

WRITE_HINTS = [
    "Check that the application has write permissions",
    "Ensure the configuration directory is accessible",
    "Verify the AUTH_SECRET environment variable is set",
]


@dataclass
class LocationCheck:
    """Result of the storage location sanity check."""
    secure: bool
    message: str


@dataclass
class PermissionReport:
    """Actual vs expected permissions of the config file and its directory."""
    supported: bool
    file_exists: bool
    file_mode: Optional[int] = None
    dir_mode: Optional[int] = None

    @property
    def file_ok(self) -> bool:
        return self.file_mode == FILE_MODE

    @property
    def dir_ok(self) -> bool:
        return self.dir_mode == DIR_MODE


def _posix_permissions_supported() -> bool:
    return sys.platform != "win32"


class ConfigStore:
    """
    Loads and saves the setup configuration document.

    Writes are not serialized; concurrent ``save`` calls for the same file
    need external coordination (last write wins).
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        cipher: Optional[SecretCipher] = None,
        settings: Optional[Settings] = None,
        check_location: bool = True,
    ):
        self.settings = settings or get_settings()
        self.config_path = Path(config_path) if config_path else self.settings.config_path
        self._cipher = cipher

        if check_location:
            self._schedule_location_check()

    @property
    def cipher(self) -> SecretCipher:
        # Resolved lazily so a store can still report status without a secret
        if self._cipher is None:
            self._cipher = get_cipher()
        return self._cipher

    @property
    def config_dir(self) -> Path:
        return self.config_path.parent

    def load(self) -> Optional[SetupConfig]:
        """
        Load configuration from disk.

        Returns:
            SetupConfig with the password decrypted, or None if not configured

        Raises:
            ConfigCorruptError: If the document is malformed
            ConfigStoreError: If the document cannot be read
            DecryptionError: If the stored password fails authentication
        """
        try:
            raw = self.config_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigStoreError(
                f"Failed to load configuration: {e}",
                path=str(self.config_path),
            )

        try:
            config = SetupConfig.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigCorruptError(
                f"Configuration file is corrupt: {e}",
                path=str(self.config_path),
            )

        pg = config.database_config.postgresql
        if config.database_config.type == DatabaseType.POSTGRESQL and pg.password:
            pg.password = self.cipher.decrypt(pg.password)

        return config

    def save(self, config: SetupConfig) -> None:
        """
        Save configuration to disk with the password encrypted.

        The caller's object is never mutated.

        Raises:
            ConfigWriteError: If the document cannot be written
            EncryptionError: If the password cannot be encrypted
        """
        to_save = config.model_copy(deep=True)

        pg = to_save.database_config.postgresql
        if to_save.database_config.type == DatabaseType.POSTGRESQL and pg.password:
            if not is_encrypted(pg.password):
                pg.password = self.cipher.encrypt(pg.password)

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(
                json.dumps(to_save.to_dict(), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            hints = list(WRITE_HINTS)
            if isinstance(e, PermissionError):
                hints.insert(0, f"Grant the application user write access to {self.config_dir}")
            raise ConfigWriteError(
                f"Failed to save configuration: {e}",
                path=str(self.config_path),
                hints=hints,
            )

        self._set_secure_permissions()
        logger.info(
            "config_saved",
            path=str(self.config_path),
            database_type=to_save.database_config.type.value,
            setup_complete=to_save.setup_complete,
        )

    def is_setup_complete(self) -> bool:
        """Check if setup is complete (a missing document means no)."""
        config = self.load()
        return config is not None and config.setup_complete

    def reset(self) -> None:
        """Delete the configuration document."""
        try:
            self.config_path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise ConfigStoreError(
                f"Failed to reset configuration: {e}",
                path=str(self.config_path),
            )
        logger.info("config_reset", path=str(self.config_path))

    def _set_secure_permissions(self) -> None:
        """Restrict the document to its owner; failures are only logged."""
        if not _posix_permissions_supported():
            return
        try:
            os.chmod(self.config_dir, DIR_MODE)
            os.chmod(self.config_path, FILE_MODE)
        except OSError as e:
            logger.warning(
                "config_permissions_not_set",
                path=str(self.config_path),
                error=str(e),
            )

    def inspect_permissions(self) -> PermissionReport:
        """Report the current permissions of the document and its directory."""
        if not _posix_permissions_supported():
            return PermissionReport(supported=False, file_exists=self.config_path.exists())

        if not self.config_path.exists():
            return PermissionReport(supported=True, file_exists=False)

        return PermissionReport(
            supported=True,
            file_exists=True,
            file_mode=stat.S_IMODE(self.config_path.stat().st_mode),
            dir_mode=stat.S_IMODE(self.config_dir.stat().st_mode),
        )

    def verify_secure_location(self) -> LocationCheck:
        """
        Check that the config directory is not web-accessible and is ignored
        by version control.

        Advisory only; never raises.
        """
        try:
            config_dir = self.config_dir.resolve()
            public_dir = self.settings.public_path

            if config_dir == public_dir or public_dir in config_dir.parents:
                return LocationCheck(
                    secure=False,
                    message="Config directory is inside the public directory and may be web-accessible",
                )

            gitignore = self.settings.project_root / ".gitignore"
            if gitignore.exists():
                if not _gitignore_covers(gitignore.read_text(encoding="utf-8"), config_dir.name):
                    return LocationCheck(
                        secure=False,
                        message=(
                            f"{config_dir.name} is not in .gitignore; "
                            "sensitive config may be committed to version control"
                        ),
                    )

            return LocationCheck(
                secure=True,
                message="Config directory is outside the public directory and ignored by version control",
            )
        except Exception as e:
            return LocationCheck(secure=False, message=f"Could not verify secure location: {e}")

    def _report_location(self) -> None:
        result = self.verify_secure_location()
        if not result.secure:
            logger.warning("config_location_insecure", detail=result.message)

    def _schedule_location_check(self) -> None:
        """Run the location check off the caller's path when a loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._report_location()
            return
        loop.run_in_executor(None, self._report_location)


def _gitignore_covers(content: str, dir_name: str) -> bool:
    """Check for an ignore rule naming the directory."""
    for line in content.splitlines():
        rule = line.strip()
        if not rule or rule.startswith("#") or rule.startswith("!"):
            continue
        if rule.startswith("**/"):
            rule = rule[3:]
        if rule.strip("/").rstrip("*").rstrip("/") == dir_name:
            return True
    return False
