"""
Tests for application settings.

Tests cover:
- Defaults
- Environment overrides (nested and partial)
- Derived URLs
- Secret validation
- Starter .env generation
"""
import logging
import os
import stat

import pytest
from pydantic import ValidationError

from portal.core.settings import Settings, TokenSettings, write_default_env


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep PORTAL_* variables from the host out of these tests."""
    for name in list(os.environ):
        if name.startswith("PORTAL_"):
            monkeypatch.delenv(name)


class TestDefaults:
    """Tests for default configuration."""

    def test_dev_mode_by_default(self):
        settings = Settings(_env_file=None)
        assert settings.dev_mode is True
        assert settings.service_base_url == "http://127.0.0.1:8888"
        assert settings.cas_base_url == "http://127.0.0.1:3000/cas"

    def test_token_defaults(self):
        settings = Settings(_env_file=None)
        session = settings.security.session.token
        csrf = settings.security.csrf.token
        assert session.cookie_name == "session_token"
        assert session.cookie_max_age == 3600
        assert csrf.cookie_name == "csrf_token"
        assert csrf.cookie_max_age == 600
        assert session.cookie_secure and session.cookie_http_only
        assert session.cookie_same_site == "strict"

    def test_generated_secrets_are_distinct(self):
        settings = Settings(_env_file=None)
        session = settings.security.session.token
        csrf = settings.security.csrf.token
        assert session.secret_is_generated
        assert len(session.secret_bytes) == 32
        assert session.secret != csrf.secret

    def test_server_defaults(self):
        server = Settings(_env_file=None).server
        assert server.request_timeout == 12.0
        assert server.max_body_size == 1024


class TestEnvironmentOverrides:
    """Tests for PORTAL_* environment variables."""

    def test_prod_mode_switches_urls(self, monkeypatch):
        monkeypatch.setenv("PORTAL_DEV_MODE", "false")
        settings = Settings(_env_file=None)
        assert settings.service_base_url == "https://portail-etu.emse.fr/photos"
        assert settings.cas_base_url == "https://cas.emse.fr"
        assert settings.database.url == ""

    def test_partial_token_override_keeps_defaults(self, monkeypatch):
        """Should merge a single nested value into the token defaults."""
        monkeypatch.setenv("PORTAL_SECURITY__SESSION__TOKEN__COOKIE_MAX_AGE", "60")
        token = Settings(_env_file=None).security.session.token
        assert token.cookie_max_age == 60
        assert token.cookie_name == "session_token"

    def test_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("PORTAL_SECURITY__CSRF__TOKEN__SECRET", "ab" * 32)
        token = Settings(_env_file=None).security.csrf.token
        assert token.secret_bytes == b"\xab" * 32
        assert not token.secret_is_generated
        assert token.cookie_name == "csrf_token"

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PORTAL_ROUTES__DASHBOARD=/home\n")
        settings = Settings(_env_file=env_file)
        assert settings.routes.dashboard == "/home"


class TestDerivedUrls:
    """Tests for callback and login URLs."""

    def test_callback_url(self, test_settings):
        assert test_settings.callback_url == "https://testserver/cas"

    def test_cas_login_url_encodes_service(self, test_settings):
        assert test_settings.cas_login_url == (
            "http://cas.test/cas/login?service=https%3A%2F%2Ftestserver%2Fcas"
        )

    def test_trailing_slash_is_dropped(self):
        settings = Settings(
            _env_file=None,
            base_urls={"dev": {"service": "http://localhost:8888/", "cas": "http://cas/"}},
        )
        assert settings.callback_url == "http://localhost:8888/cas"
        assert settings.cas_base_url == "http://cas"


class TestValidation:
    """Tests for rejected configuration."""

    def test_invalid_hex_secret(self):
        with pytest.raises(ValidationError):
            TokenSettings(secret="xyz", cookie_name="c", cookie_max_age=10)

    def test_non_positive_max_age(self):
        with pytest.raises(ValidationError):
            TokenSettings(cookie_name="c", cookie_max_age=0)


class TestInsecureDefaultsWarning:
    """Tests for warn_insecure_defaults."""

    def test_warns_in_prod_with_generated_secrets(self, caplog):
        settings = Settings(_env_file=None, dev_mode=False)
        with caplog.at_level(logging.WARNING):
            settings.warn_insecure_defaults()
        assert "No session secret configured" in caplog.text
        assert "No csrf secret configured" in caplog.text

    def test_silent_in_dev(self, caplog):
        with caplog.at_level(logging.WARNING):
            Settings(_env_file=None).warn_insecure_defaults()
        assert caplog.text == ""

    def test_silent_with_configured_secrets(self, test_settings, caplog):
        prod = test_settings.model_copy(update={"dev_mode": False})
        with caplog.at_level(logging.WARNING):
            prod.warn_insecure_defaults()
        assert caplog.text == ""


class TestWriteDefaultEnv:
    """Tests for write_default_env."""

    def test_writes_secrets(self, tmp_path):
        path = write_default_env(tmp_path / ".env")
        content = path.read_text()
        assert "PORTAL_DEV_MODE=true" in content
        assert "PORTAL_SECURITY__SESSION__TOKEN__SECRET=" in content
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_written_file_loads(self, tmp_path):
        path = write_default_env(tmp_path / ".env")
        settings = Settings(_env_file=path)
        assert not settings.security.session.token.secret_is_generated
        assert not settings.security.csrf.token.secret_is_generated

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("keep me")
        with pytest.raises(FileExistsError):
            write_default_env(path)
        assert path.read_text() == "keep me"
