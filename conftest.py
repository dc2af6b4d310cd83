"""Pytest configuration and fixtures for aemcheck tests.

CRITICAL: Protects production configuration from test modifications.
"""

import shutil
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def protect_production_config():
    """Protect ~/.aemcheck/config.toml from being modified by tests.

    This fixture:
    1. Backs up the real config.toml before any tests run
    2. Restores it after all tests complete
    """
    config_path = Path.home() / ".aemcheck" / "config.toml"
    backup_path = Path.home() / ".aemcheck" / ".config.toml.pytest-backup"

    config_existed = config_path.exists()
    if config_existed:
        shutil.copy2(config_path, backup_path)
        print(f"\n[PYTEST] Protected config.toml - backup at {backup_path}")

    yield

    if config_existed and backup_path.exists():
        shutil.copy2(backup_path, config_path)
        backup_path.unlink()
        print("\n[PYTEST] Restored config.toml from backup")
    elif backup_path.exists():
        backup_path.unlink()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point ConfigManager's default location at tmp_path.

    Example:
        def test_something(isolated_config):
            ConfigManager.save_config(config)  # Writes isolated_config
    """
    from aemcheck.config_manager import ConfigManager

    config_dir = tmp_path / ".aemcheck"
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", config_dir / "config.toml")
    return config_dir / "config.toml"
