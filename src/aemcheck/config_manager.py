"""Configuration management module.

This module handles persistent configuration storage using TOML format.
Stores the subscription to query, polling parameters and the metrics table
names checked for each OS type.

Security:
- Config file permissions: 0600 (owner read/write only)
- No keys or secrets are ever stored in the config file
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

try:
    import tomli  # type: ignore[import]
except ImportError:
    # Fallback for Python versions with tomllib in the standard library
    try:
        import tomllib as tomli  # type: ignore[import]
    except ImportError as e:
        raise ImportError("toml library not available. Install with: pip install tomli") from e

try:
    import tomlkit
except ImportError as e:
    raise ImportError("tomlkit library not available. Install with: pip install tomlkit") from e

from aemcheck.account_directory import DEFAULT_ENDPOINT_SUFFIX
from aemcheck.diagnostics_verifier import DIAGNOSTICS_TABLES, METRICS_TABLE_PREFIX

logger = logging.getLogger(__name__)

SUBSCRIPTION_ENV_VAR = "AZURE_SUBSCRIPTION_ID"


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


def _default_tables() -> dict[str, list[str]]:
    return {os_type: list(tables) for os_type, tables in DIAGNOSTICS_TABLES.items()}


@dataclass
class AemCheckConfig:
    """aemcheck configuration data."""

    subscription_id: str | None = None
    default_endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
    poll_interval_seconds: int = 5
    timeout_minutes: int = 15
    search_window_minutes: int = 5
    metrics_table_prefix: str = METRICS_TABLE_PREFIX
    diagnostics_tables: dict[str, list[str]] = field(default_factory=_default_tables)

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(seconds=self.poll_interval_seconds)

    @property
    def timeout(self) -> timedelta:
        return timedelta(minutes=self.timeout_minutes)

    @property
    def search_window(self) -> timedelta:
        return timedelta(minutes=self.search_window_minutes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        # TOML has no null
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AemCheckConfig":
        """Create from dictionary.

        Raises:
            ConfigError: If a numeric setting is not a positive integer
        """
        config = cls(
            subscription_id=data.get("subscription_id"),
            default_endpoint_suffix=data.get("default_endpoint_suffix", DEFAULT_ENDPOINT_SUFFIX),
            poll_interval_seconds=data.get("poll_interval_seconds", 5),
            timeout_minutes=data.get("timeout_minutes", 15),
            search_window_minutes=data.get("search_window_minutes", 5),
            metrics_table_prefix=data.get("metrics_table_prefix", METRICS_TABLE_PREFIX),
            diagnostics_tables={
                str(k): list(v)
                for k, v in data.get("diagnostics_tables", _default_tables()).items()
            },
        )
        for name in ("poll_interval_seconds", "timeout_minutes", "search_window_minutes"):
            value = getattr(config, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        return config


class ConfigManager:
    """Manage the aemcheck configuration file.

    Configuration is stored at ~/.aemcheck/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".aemcheck"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If a custom path does not exist
        """
        if custom_path:
            path = Path(custom_path).expanduser().resolve()
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def ensure_config_dir(cls) -> Path:
        """Ensure config directory exists with secure permissions.

        Raises:
            ConfigError: If directory creation fails
        """
        try:
            cls.DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            os.chmod(cls.DEFAULT_CONFIG_DIR, 0o700)
            logger.debug(f"Config directory ready: {cls.DEFAULT_CONFIG_DIR}")
            return cls.DEFAULT_CONFIG_DIR
        except Exception as e:
            raise ConfigError(f"Failed to create config directory: {e}") from e

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> AemCheckConfig:
        """Load configuration from file.

        The AZURE_SUBSCRIPTION_ID environment variable overrides the
        subscription in the file.

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            config = AemCheckConfig()
        else:
            try:
                mode = config_path.stat().st_mode & 0o777
                if mode & 0o077:
                    logger.warning(
                        f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                    )
                    os.chmod(config_path, 0o600)

                with open(config_path, "rb") as f:
                    data = tomli.load(f)  # type: ignore[attr-defined]

                logger.debug(f"Loaded config from: {config_path}")
                config = AemCheckConfig.from_dict(data)
            except ConfigError:
                raise
            except Exception as e:
                raise ConfigError(f"Failed to load config: {e}") from e

        env_subscription = os.environ.get(SUBSCRIPTION_ENV_VAR)
        if env_subscription:
            config.subscription_id = env_subscription
        return config

    @classmethod
    def save_config(cls, config: AemCheckConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file atomically, preserving existing comments.

        Returns:
            Path the config was written to

        Raises:
            ConfigError: If saving fails
        """
        temp_path: Path | None = None
        try:
            if custom_path:
                config_path = Path(custom_path).expanduser().resolve()
                config_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls.ensure_config_dir()
                config_path = cls.DEFAULT_CONFIG_FILE

            temp_path = config_path.with_suffix(".tmp")

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()
            for key, value in config.to_dict().items():
                doc[key] = value

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except Exception as e:
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e


__all__ = ["AemCheckConfig", "ConfigError", "ConfigManager", "SUBSCRIPTION_ENV_VAR"]
