"""
Tests for settings loading and environment validation.
"""
import pytest

from provisioner.config.settings import (
    MIN_SECRET_LENGTH,
    Settings,
    get_settings,
    reload_settings,
    validate_environment,
    validate_on_startup,
)


class TestSettings:
    """Tests for Settings defaults and derived paths."""

    def test_defaults(self, tmp_path):
        settings = Settings(project_root=tmp_path)

        assert settings.config_dir == ".data"
        assert settings.config_file == "config.json"
        assert settings.data_dir == "data"
        assert settings.public_dir == "public"
        assert settings.log_level == "INFO"
        assert settings.skip_setup is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", "private")
        monkeypatch.setenv("SKIP_SETUP", "true")

        settings = reload_settings()

        assert settings.config_dir == "private"
        assert settings.skip_setup is True

    def test_config_path(self, tmp_path):
        settings = Settings(project_root=tmp_path)

        assert settings.config_path == (tmp_path / ".data" / "config.json").resolve()
        assert settings.public_path == (tmp_path / "public").resolve()
        assert settings.data_path == (tmp_path / "data").resolve()

    def test_is_production(self, tmp_path):
        assert Settings(project_root=tmp_path, environment="Production").is_production
        assert not Settings(project_root=tmp_path).is_production

    def test_get_settings_singleton(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        first = get_settings()

        assert reload_settings() is not first


class TestValidateEnvironment:
    """Tests for validate_environment."""

    def test_valid(self, settings):
        result = validate_environment(settings)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_missing_secret(self, tmp_path):
        settings = Settings(project_root=tmp_path, auth_secret="", auth_url="http://localhost")

        result = validate_environment(settings)

        assert result.valid is False
        assert any("AUTH_SECRET" in e for e in result.errors)

    def test_short_secret_warns(self, tmp_path):
        settings = Settings(
            project_root=tmp_path,
            auth_secret="x" * (MIN_SECRET_LENGTH - 1),
            auth_url="https://example.com",
        )

        result = validate_environment(settings)

        assert result.valid is True
        assert any("AUTH_SECRET" in w for w in result.warnings)

    @pytest.mark.parametrize("url", ["", "localhost:5173", "ftp://example.com"])
    def test_bad_auth_url(self, tmp_path, url):
        settings = Settings(project_root=tmp_path, auth_secret="x" * 40, auth_url=url)

        result = validate_environment(settings)

        assert result.valid is False
        assert any("AUTH_URL" in e for e in result.errors)

    def test_skip_setup_warns(self, tmp_path):
        settings = Settings(
            project_root=tmp_path,
            auth_secret="x" * 40,
            auth_url="http://localhost",
            skip_setup=True,
        )

        result = validate_environment(settings)

        assert result.valid is True
        assert any("SKIP_SETUP" in w for w in result.warnings)


class TestValidateOnStartup:
    """Tests for validate_on_startup."""

    def test_invalid_in_development_does_not_raise(self, tmp_path):
        settings = Settings(project_root=tmp_path, auth_secret="", auth_url="")

        result = validate_on_startup(settings)

        assert result.valid is False

    def test_invalid_in_production_raises(self, tmp_path):
        settings = Settings(
            project_root=tmp_path,
            auth_secret="",
            auth_url="",
            environment="production",
        )

        with pytest.raises(RuntimeError):
            validate_on_startup(settings)
