"""
Configuration Validation Module
Validates Supabase configuration on startup
"""
import os
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when an operation needs configuration that is not set."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    component: str
    setting: str
    is_valid: bool
    message: str
    is_warning: bool = False


class ConfigValidator:
    """
    Validates backend configuration at startup.

    The anon key is required for every dashboard read and write. The
    service-role key only powers admin user provisioning, so its absence
    is reported as a warning.
    """

    REQUIRED_ENV_VARS = {
        "database": [
            ("SUPABASE_URL", "Supabase endpoint"),
            ("SUPABASE_ANON_KEY", "Supabase anonymous key"),
        ],
    }

    OPTIONAL_ENV_VARS = {
        "admin": [
            ("SUPABASE_SERVICE_ROLE_KEY", "Admin user provisioning"),
        ],
    }

    def __init__(self, strict: bool = False):
        """
        Args:
            strict: If True, treat warnings as errors
        """
        self.strict = strict
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate all configuration.

        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []

        for component, vars_list in self.REQUIRED_ENV_VARS.items():
            for env_var, description in vars_list:
                if os.getenv(env_var):
                    self._add(component, env_var, True, f"{description} configured")
                else:
                    self._add(component, env_var, False, f"{description} requires {env_var} to be set")

        for component, vars_list in self.OPTIONAL_ENV_VARS.items():
            for env_var, description in vars_list:
                if os.getenv(env_var):
                    self._add(component, env_var, True, f"{description} configured")
                else:
                    self._add(
                        component, env_var, False,
                        f"{description} disabled ({env_var} not set)",
                        is_warning=True,
                    )

        failures = [
            r for r in self.results
            if not r.is_valid and (self.strict or not r.is_warning)
        ]
        return len(failures) == 0, self.results

    def _add(self, component: str, setting: str, is_valid: bool, message: str, is_warning: bool = False):
        self.results.append(ValidationResult(
            component=component,
            setting=setting,
            is_valid=is_valid,
            message=message,
            is_warning=is_warning,
        ))

    def log_results(self) -> None:
        """Log all validation results."""
        for r in self.results:
            if r.is_valid:
                logger.info(f"  ✓ [{r.component}] {r.message}")
            elif r.is_warning:
                logger.warning(f"  ⚠ [{r.component}] {r.message}")
            else:
                logger.error(f"  ✗ [{r.component}] {r.message}")

    def get_error_summary(self) -> Optional[str]:
        """Get summary of errors for exception message."""
        errors = [
            r for r in self.results
            if not r.is_valid and (self.strict or not r.is_warning)
        ]
        if not errors:
            return None

        lines = ["Configuration errors:"]
        for r in errors:
            lines.append(f"  - {r.setting}: {r.message}")
        return "\n".join(lines)


def validate_config_on_startup(strict: bool = False) -> None:
    """
    Validate configuration at startup.

    Raises:
        RuntimeError: If required configuration is missing
    """
    validator = ConfigValidator(strict=strict)
    all_valid, _ = validator.validate_all()
    validator.log_results()

    if not all_valid:
        raise RuntimeError(validator.get_error_summary())

    logger.info("Configuration validated successfully")
