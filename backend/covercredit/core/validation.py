"""
Configuration Validation Module
Checks settings on startup before the API accepts requests
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from covercredit.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    component: str
    setting: str
    is_valid: bool
    message: str
    is_warning: bool = False


class ConfigurationValidator:
    """
    Validates settings at startup.

    Admin auth and storage are required; notification channels are optional
    and only produce warnings (their sends are skipped when unconfigured).
    """

    # (component, settings attribute, env var, description)
    REQUIRED_SETTINGS = [
        ("auth", "jwt_secret", "JWT_SECRET", "Admin bearer token verification"),
        ("database", "database_url", "DATABASE_URL", "Lead storage"),
    ]

    OPTIONAL_SETTINGS = [
        ("email", "brevo_api_key", "BREVO_API_KEY", "Brevo email alerts"),
        ("email", "email_to", "EMAIL_TO", "Admin alert recipients"),
        ("whatsapp", "callmebot_api_key", "CALLMEBOT_API_KEY", "WhatsApp alerts"),
        ("whatsapp", "whatsapp_to", "WHATSAPP_TO", "WhatsApp alert number"),
    ]

    def __init__(self, settings: Optional[Settings] = None):
        """
        Args:
            settings: Settings to check (defaults to the cached application settings)
        """
        self.settings = settings or get_settings()
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        self.results = []

        for component, attr, env_var, description in self.REQUIRED_SETTINGS:
            if getattr(self.settings, attr, None):
                self._add_success(component, env_var, f"{description} configured")
            else:
                self._add_error(component, env_var, f"{description} requires {env_var} to be set")

        for component, attr, env_var, description in self.OPTIONAL_SETTINGS:
            if getattr(self.settings, attr, None):
                self._add_success(component, env_var, f"{description} configured")
            else:
                self._add_warning(component, env_var, f"{description} not configured ({env_var})")

        all_valid = all(r.is_valid for r in self.results)
        return all_valid, self.results

    def _add_success(self, component: str, setting: str, message: str):
        self.results.append(ValidationResult(component, setting, True, message))

    def _add_error(self, component: str, setting: str, message: str):
        self.results.append(ValidationResult(component, setting, False, message))

    def _add_warning(self, component: str, setting: str, message: str):
        self.results.append(ValidationResult(
            component, setting, True, f"WARNING: {message}", is_warning=True
        ))

    def log_results(self):
        errors = [r for r in self.results if not r.is_valid]
        warnings = [r for r in self.results if r.is_valid and r.is_warning]
        successes = [r for r in self.results if r.is_valid and not r.is_warning]

        if successes:
            logger.info("Configuration validated:")
            for r in successes:
                logger.info(f"  ✓ [{r.component}] {r.message}")

        for r in warnings:
            logger.warning(f"  ⚠ [{r.component}] {r.message}")

        if errors:
            logger.error("Configuration errors:")
            for r in errors:
                logger.error(f"  ✗ [{r.component}] {r.message}")

    def get_error_summary(self) -> Optional[str]:
        errors = [r for r in self.results if not r.is_valid]
        if not errors:
            return None

        lines = ["Configuration errors:"]
        for r in errors:
            lines.append(f"  - {r.setting}: {r.message}")
        return "\n".join(lines)


def validate_configuration_on_startup(strict: bool = False, settings: Optional[Settings] = None) -> bool:
    """
    Validate settings at startup.

    Call this from the FastAPI lifespan.

    Args:
        strict: If True, raise on any error (production); otherwise only log

    Returns:
        True if every check passed

    Raises:
        RuntimeError: In strict mode, if any check failed
    """
    validator = ConfigurationValidator(settings=settings)
    all_valid, _ = validator.validate_all()
    validator.log_results()

    if not all_valid:
        error_msg = validator.get_error_summary()
        if strict:
            raise RuntimeError(error_msg)
        logger.warning("Continuing with incomplete configuration (non-strict mode)")
        return False

    logger.info("All configuration validated successfully")
    return True
