"""
Basic Tests for Core Functionality
Tests the YAML catalog, startup configuration validation and admin tokens
"""
from datetime import timedelta

import pytest

from covercredit.core.config import ConfigManager, Settings
from covercredit.core.security import create_access_token, decode_access_token
from covercredit.core.validation import ConfigurationValidator, validate_configuration_on_startup


class TestConfigManager:
    """Tests for the YAML notification catalog."""

    def test_env_file_overrides_default(self, tmp_path, monkeypatch):
        (tmp_path / "default.yaml").write_text(
            "business:\n  name: Cover Credit\n  support_phone: ${CC_SUPPORT_PHONE}\n"
            "display:\n  timezone: Asia/Kolkata\n",
            encoding="utf-8",
        )
        (tmp_path / "staging.yaml").write_text(
            "business:\n  name: Cover Credit (staging)\n", encoding="utf-8"
        )
        monkeypatch.setenv("CC_SUPPORT_PHONE", "+91 90000 00000")

        config = ConfigManager(env="staging", config_dir=tmp_path)

        assert config.get("business.name") == "Cover Credit (staging)"
        assert config.get("business.support_phone") == "+91 90000 00000"
        assert config.get("display.timezone") == "Asia/Kolkata"
        assert config.get("display.missing", "fallback") == "fallback"

    def test_unset_env_var_is_left_as_is(self, tmp_path, monkeypatch):
        (tmp_path / "default.yaml").write_text("business:\n  phone: ${CC_UNSET_VAR}\n", encoding="utf-8")
        monkeypatch.delenv("CC_UNSET_VAR", raising=False)

        config = ConfigManager(config_dir=tmp_path)

        assert config.get("business.phone") == "${CC_UNSET_VAR}"

    def test_missing_files(self, tmp_path):
        config = ConfigManager(config_dir=tmp_path)

        assert config.get("business.name") is None

    def test_department_meta(self):
        config = ConfigManager()

        assert config.department_meta("health") == {"label": "Health Insurance", "icon": "🏥"}
        assert config.department_meta("marine") == {"label": "marine", "icon": "📋"}

    def test_detail_label(self):
        config = ConfigManager()

        assert config.detail_label("regNumber") == "Registration Number"
        assert config.detail_label("monthlyPremium") == "Monthly Premium"


class TestSettings:

    def test_admin_emails(self):
        settings = Settings(email_to=" a@x.in, ,b@x.in ")

        assert settings.admin_emails == ["a@x.in", "b@x.in"]

    def test_is_production(self):
        assert Settings(environment="production").is_production is True
        assert Settings(environment="development").is_production is False


class TestConfigurationValidation:
    """Tests for startup configuration validation."""

    def test_missing_required_is_error(self):
        validator = ConfigurationValidator(settings=Settings(jwt_secret="", database_url="sqlite://"))

        all_valid, results = validator.validate_all()

        assert all_valid is False
        assert "JWT_SECRET" in validator.get_error_summary()

    def test_missing_channels_only_warn(self):
        settings = Settings(
            jwt_secret="s", database_url="sqlite://",
            brevo_api_key="", email_to="", callmebot_api_key="", whatsapp_to="",
        )
        validator = ConfigurationValidator(settings=settings)

        all_valid, results = validator.validate_all()

        assert all_valid is True
        assert len([r for r in results if r.is_warning]) == 4
        assert validator.get_error_summary() is None

    def test_strict_raises(self):
        with pytest.raises(RuntimeError, match="JWT_SECRET"):
            validate_configuration_on_startup(strict=True, settings=Settings(jwt_secret=""))

    def test_non_strict_continues(self):
        assert validate_configuration_on_startup(strict=False, settings=Settings(jwt_secret="")) is False

    def test_strict_passes_with_warnings(self):
        settings = Settings(jwt_secret="s", database_url="sqlite://", brevo_api_key="")

        assert validate_configuration_on_startup(strict=True, settings=settings) is True


class TestAccessTokens:
    """Tests for admin JWTs."""

    def test_round_trip(self):
        settings = Settings(jwt_secret="secret")
        token = create_access_token({"sub": "1", "role": "admin"}, settings=settings)

        payload = decode_access_token(token, settings)

        assert payload["sub"] == "1"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"

    def test_expired_token(self):
        settings = Settings(jwt_secret="secret")
        token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-10), settings=settings)

        assert decode_access_token(token, settings) is None

    def test_wrong_secret(self):
        token = create_access_token({"sub": "1"}, settings=Settings(jwt_secret="secret"))

        assert decode_access_token(token, Settings(jwt_secret="other")) is None

    def test_no_secret_configured(self):
        token = create_access_token({"sub": "1"}, settings=Settings(jwt_secret="secret"))

        assert decode_access_token(token, Settings(jwt_secret="")) is None

    def test_garbage_token(self):
        assert decode_access_token("not-a-jwt", Settings(jwt_secret="secret")) is None
