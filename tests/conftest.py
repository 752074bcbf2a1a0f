"""
Pytest configuration and shared fixtures.

Every test runs in its own temporary project root with a known AUTH_SECRET,
and the process-wide settings, cipher and auth handle are rebuilt around it.
"""
import pytest

from provisioner.auth import instance as auth_instance_module
from provisioner.config import settings as settings_module
from provisioner.config.settings import reload_settings
from provisioner.config.store import ConfigStore
from provisioner.models.database import DatabaseConfig
from provisioner.security.encryption import SecretCipher, reset_cipher

TEST_SECRET = "test-secret-that-is-at-least-32-characters-long"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Point settings at a throwaway project root."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)
    monkeypatch.setenv("AUTH_URL", "http://localhost:5173")
    monkeypatch.setenv("PROJECT_ROOT", str(tmp_path))
    for name in ("CONFIG_DIR", "CONFIG_FILE", "DATA_DIR", "PUBLIC_DIR", "ENVIRONMENT", "SKIP_SETUP"):
        monkeypatch.delenv(name, raising=False)

    reload_settings()
    reset_cipher()
    auth_instance_module._auth_instance = None
    yield
    settings_module._settings = None
    reset_cipher()
    auth_instance_module._auth_instance = None


@pytest.fixture
def auth_secret():
    return TEST_SECRET


@pytest.fixture
def settings():
    return settings_module.get_settings()


@pytest.fixture
def cipher():
    return SecretCipher(TEST_SECRET)


@pytest.fixture
def store(settings, cipher):
    return ConfigStore(settings=settings, cipher=cipher, check_location=False)


@pytest.fixture
def sqlite_config(tmp_path):
    return DatabaseConfig.for_sqlite(str(tmp_path / "data" / "auth.db"))


@pytest.fixture
def pg_config():
    return DatabaseConfig.for_postgresql(
        host="db.example.com",
        port=5432,
        database="app",
        username="app_user",
        password="s3cret-password",
    )
