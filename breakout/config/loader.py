"""Configuration loading utilities."""

import json
import os
import stat
from pathlib import Path

from loguru import logger

from breakout.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".breakout" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Environment variables (``BREAKOUT_STORAGE__STORAGE_DIR`` and friends)
    apply on top of the defaults when no file exists.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            current_mode = stat.S_IMODE(os.stat(path).st_mode)
            if current_mode & 0o077:
                logger.warning(
                    f"Config file has loose permissions: {oct(current_mode)}. "
                    f"Fixing to 0o600 (owner read/write only)..."
                )
                os.chmod(path, 0o600)
        except OSError as e:
            logger.warning(f"Could not verify config permissions: {e}")

        try:
            with open(path) as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file with owner-only permissions.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True, mode="json")

    with open(path, "w") as f:
        json.dump(data, f, indent=2)

    os.chmod(path, 0o600)
    logger.debug(f"Config saved: {path}")


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    # Move top-level storageDir → storage.storageDir
    if "storageDir" in data:
        storage = data.setdefault("storage", {})
        storage.setdefault("storageDir", data.pop("storageDir"))
    return data
