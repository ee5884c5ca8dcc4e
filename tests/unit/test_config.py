import logging

import pytest

from campusgate.config.logging import setup_logging
from campusgate.config.settings import Settings, get_settings
from campusgate.exceptions import ConfigError


@pytest.mark.unit
class TestSettings:
    def test_default_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEBUG")
        monkeypatch.delenv("LOG_LEVEL")
        settings = Settings()
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.session_cookie_name == "campusgate_session"
        assert settings.session_max_age == 86400
        assert settings.oauth_state_ttl == 600
        assert "postgresql" in settings.database_url

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://user:pass@db:5432/gate")
        monkeypatch.setenv("USE_DATABASE", "true")
        monkeypatch.setenv("SESSION_MAX_AGE", "3600")
        settings = Settings()
        assert settings.use_database is True
        assert settings.session_max_age == 3600
        assert settings.database_url.endswith("/gate")

    def test_role_classification_normalises_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ADMIN_EMAILS", " Root@CampusGate.io , ops@campusgate.io,,")
        monkeypatch.setenv("STAFF_EMAILS", "Registrar@beta.edu")
        monkeypatch.setenv("STAFF_DOMAIN_SUFFIX", "@Staff.Example.org")
        config = Settings().role_classification()
        assert config.admin_emails == frozenset({"root@campusgate.io", "ops@campusgate.io"})
        assert config.staff_emails == frozenset({"registrar@beta.edu"})
        assert config.staff_domain_suffix == "staff.example.org"

    def test_insecure_secret_warns(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SECRET_KEY")
        get_settings.cache_clear()
        with pytest.warns(UserWarning, match="SECRET_KEY"):
            get_settings()

    def test_non_positive_session_age_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SESSION_MAX_AGE", "0")
        get_settings.cache_clear()
        with pytest.raises(ConfigError):
            get_settings()


@pytest.mark.unit
class TestSetupLogging:
    def test_quiets_http_client_loggers(self) -> None:
        setup_logging(log_level="DEBUG", json_output=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
