"""
Configuration loader for the Sales Budget Planner.

Loads settings from budget_config.yaml and provides typed access
to all configuration sections.
"""
import os
from pathlib import Path
from typing import Any, Optional
from functools import lru_cache

import yaml


# Shipped with the package; SALESBUDGET_CONFIG points elsewhere
DEFAULT_CONFIG_PATH = Path(__file__).parent / "budget_config.yaml"

CONFIG_PATH_ENV = "SALESBUDGET_CONFIG"

DATABASE_URL_ENV = "SALESBUDGET_DATABASE_URL"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class BudgetConfig:
    """
    Configuration manager for the Sales Budget Planner.

    Loads YAML configuration and provides typed access to all sections.
    Use get_config() to obtain the singleton instance.
    """

    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None and os.environ.get(CONFIG_PATH_ENV):
            config_path = Path(os.environ[CONFIG_PATH_ENV])
        self._config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load()
        get_config.cache_clear()

    @property
    def version(self) -> str:
        """Configuration file version."""
        return self._config.get("version", "unknown")

    # =========================================================================
    # Database
    # =========================================================================

    @property
    def database(self) -> dict:
        """Database configuration."""
        return self._config.get("database", {})

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL; the environment variable wins over the file."""
        return os.environ.get(
            DATABASE_URL_ENV,
            self.database.get("url", "sqlite:///./salesbudget.db")
        )

    @property
    def database_echo(self) -> bool:
        """Whether SQLAlchemy should echo SQL statements."""
        return bool(self.database.get("echo", False))

    # =========================================================================
    # Divisions
    # =========================================================================

    @property
    def divisions(self) -> dict:
        """All division definitions keyed by division code."""
        return self._config.get("divisions", {})

    @property
    def division_codes(self) -> list[str]:
        """Configured division codes, upper-cased."""
        return [str(code).upper() for code in self.divisions.keys()]

    def get_division_name(self, division_code: str) -> Optional[str]:
        """Get division name by code (e.g., 'FP' -> 'Flexible Packaging')."""
        division = self.divisions.get(str(division_code).upper())
        return division.get("name") if division else None

    def find_division_by_name(self, name: str) -> Optional[str]:
        """Find division code by code, name or alias (case-insensitive)."""
        name_lower = name.lower().strip()
        for code, division in self.divisions.items():
            if str(code).lower() == name_lower:
                return str(code).upper()
            if division.get("name", "").lower().strip() == name_lower:
                return str(code).upper()
            for alias in division.get("aliases", []):
                if alias.lower() == name_lower:
                    return str(code).upper()
        return None

    # =========================================================================
    # Estimates
    # =========================================================================

    @property
    def estimate(self) -> dict:
        """Estimate (proportional distribution) configuration."""
        return self._config.get("estimate", {})

    @property
    def estimate_batch_size(self) -> int:
        """Maximum rows per INSERT statement when saving estimates."""
        return int(self.estimate.get("batch_size", 500))

    # =========================================================================
    # Budget Documents
    # =========================================================================

    @property
    def document(self) -> dict:
        """Budget document protocol configuration."""
        return self._config.get("document", {})

    @property
    def document_format_version(self) -> str:
        """The only document format version accepted on import."""
        return str(self.document.get("format_version", "1.0"))

    @property
    def document_signature_prefix(self) -> str:
        """Marker that opens the leading signature comment."""
        return str(self.document.get("signature_prefix", "IPD_BUDGET_SYSTEM"))

    @property
    def document_max_records(self) -> int:
        """Upper bound on records per imported document."""
        return int(self.document.get("max_records", 10000))

    @property
    def document_max_value(self) -> float:
        """Sanity ceiling for a single record value (KGS)."""
        return float(self.document.get("max_value", 1_000_000_000))

    @property
    def document_error_rate_threshold(self) -> float:
        """Fraction of invalid records above which an import is rejected."""
        return float(self.document.get("error_rate_threshold", 0.10))

    @property
    def document_year_range(self) -> tuple[int, int]:
        """Inclusive (min, max) range for the budget year."""
        return (
            int(self.document.get("year_min", 2020)),
            int(self.document.get("year_max", 2100)),
        )

    @property
    def document_error_sample_size(self) -> int:
        """How many record errors are echoed back to the caller."""
        return int(self.document.get("error_sample_size", 10))

    @property
    def document_recalc_debounce_ms(self) -> int:
        """Client-side recomputation debounce in milliseconds."""
        return int(self.document.get("recalc_debounce_ms", 250))

    # =========================================================================
    # Pricing
    # =========================================================================

    @property
    def pricing(self) -> dict:
        """Pricing lookup configuration."""
        return self._config.get("pricing", {})

    @property
    def pricing_year_offset(self) -> int:
        """Pricing year = budget year - offset."""
        return int(self.pricing.get("year_offset", 1))

    # =========================================================================
    # Logging
    # =========================================================================

    @property
    def logging(self) -> dict:
        """Logging configuration."""
        return self._config.get("logging", {})

    @property
    def log_level(self) -> str:
        """Root log level name."""
        return str(self.logging.get("level", "INFO")).upper()

    # =========================================================================
    # Raw Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level config value by key."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to config."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if key exists in config."""
        return key in self._config


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> BudgetConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file. Only used on first call.

    Returns:
        BudgetConfig singleton instance
    """
    path = Path(config_path) if config_path else None
    return BudgetConfig(path)


def reload_config() -> BudgetConfig:
    """Reload configuration from disk and return new instance."""
    get_config.cache_clear()
    return get_config()
