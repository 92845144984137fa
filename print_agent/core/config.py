"""
Config utilities for the print agent.

Responsibilities:
- Resolve config/printers/work paths with environment and XDG support
- Provide JSON load/save helpers (atomic writes)
- Load the agent Config, bootstrapping it from the environment on first run
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from print_agent.core.errors import ConfigError
from print_agent.core.models import Config

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
DEFAULT_API_URL = "https://api.perfect-menu.it"
DEFAULT_WS_URL = "wss://ws.perfect-menu.it/agent"


def _config_home() -> Path:
    """
    Resolve the base config directory using:
    1) $XDG_CONFIG_HOME/printagent
    2) ~/.config/printagent
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "printagent"
    return Path.home() / ".config" / "printagent"


def default_config_path() -> str:
    return str(_config_home() / "config.json")


def default_printers_path() -> str:
    return str(_config_home() / "printers.json")


def default_work_dir() -> str:
    """
    Rendered artifacts live under:
    1) $XDG_CACHE_HOME/printagent/tmp
    2) ~/.cache/printagent/tmp
    """
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return str(Path(xdg) / "printagent" / "tmp")
    return str(Path.home() / ".cache" / "printagent" / "tmp")


def get_config_path() -> str:
    """
    Return the config path honoring PRINTAGENT_CONFIG_PATH override.
    """
    return os.environ.get("PRINTAGENT_CONFIG_PATH", default_config_path())


def get_printers_path() -> str:
    """
    Return the printer registry path honoring PRINTAGENT_PRINTERS_PATH override.
    """
    return os.environ.get("PRINTAGENT_PRINTERS_PATH", default_printers_path())


def get_work_dir(config: Optional[Config] = None) -> str:
    if config is not None and config.work_dir:
        return config.work_dir
    return os.environ.get("PRINTAGENT_WORK_DIR", default_work_dir())


def ensure_dir(path: str) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def load_json(path: str) -> Optional[Any]:
    """
    Load a JSON document if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    p = Path(path)
    if not p.exists():
        return None
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_json(data: Any, path: str) -> None:
    """
    Save a JSON document, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = p.with_suffix(p.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, p)


def load_config(path: Optional[str] = None) -> Optional[Config]:
    """
    Load the agent Config if the file exists; return None if missing.

    Raises ConfigError when the file is unreadable or does not validate.
    """
    cfg_path = path or get_config_path()
    try:
        data = load_json(cfg_path)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config {cfg_path}: {e}") from e
    if data is None:
        return None
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {cfg_path}", {"errors": e.errors(include_url=False)}) from e


def save_config(config: Config, path: Optional[str] = None) -> None:
    save_json(config.to_record(), path or get_config_path())


def config_from_env() -> Config:
    """
    Build a Config from PRINTAGENT_* environment variables.
    """
    api_key = os.environ.get("PRINTAGENT_API_KEY", "").strip()
    if not api_key:
        raise ConfigError("No config file found and PRINTAGENT_API_KEY is not set")
    try:
        return Config(
            app_version=APP_VERSION,
            api_key=api_key,
            tenant_id=int(os.environ.get("PRINTAGENT_TENANT_ID", "0")),
            restaurant_id=int(os.environ.get("PRINTAGENT_RESTAURANT_ID", "0")),
            api_url=os.environ.get("PRINTAGENT_API_URL", DEFAULT_API_URL),
            ws_url=os.environ.get("PRINTAGENT_WS_URL", DEFAULT_WS_URL),
        )
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid PRINTAGENT_* environment: {e}") from e


def load_or_bootstrap_config(path: Optional[str] = None) -> Config:
    """
    Return the saved Config, creating and persisting one from the
    environment on first run.
    """
    cfg_path = path or get_config_path()
    config = load_config(cfg_path)
    if config is not None:
        return config
    logger.info("No config at %s; bootstrapping from environment", cfg_path)
    config = config_from_env()
    try:
        save_config(config, cfg_path)
    except OSError as e:
        raise ConfigError(f"Cannot write config {cfg_path}: {e}") from e
    logger.info("Configuration saved to %s", cfg_path)
    return config


__all__ = [
    "APP_VERSION",
    "config_from_env",
    "default_config_path",
    "default_printers_path",
    "default_work_dir",
    "ensure_dir",
    "get_config_path",
    "get_printers_path",
    "get_work_dir",
    "load_config",
    "load_json",
    "load_or_bootstrap_config",
    "save_config",
    "save_json",
]
