"""Reading and writing ~/.chimpflow/config.json."""

import json
import os
import stat
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from chimpflow.config.schema import Config
from chimpflow.errors import ChimpflowError, ErrorKind

PRIVATE_FILE = 0o600
PRIVATE_DIR = 0o700


def get_config_path() -> Path:
    return Path.home() / ".chimpflow" / "config.json"


def _lock_down(path: Path) -> None:
    """Config may hold API keys: keep it readable by its owner only."""
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode != PRIVATE_FILE:
            logger.warning(f"{path} is mode {oct(mode)}, tightening to {oct(PRIVATE_FILE)}")
            os.chmod(path, PRIVATE_FILE)
    except OSError as e:
        logger.warning(f"Could not check permissions on {path}: {e}")


def _parse(path: Path) -> Config:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return Config(**data)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ChimpflowError(
            ErrorKind.CONFIG,
            f"Invalid config file {path}: {e}",
            component="config",
            operation="load",
            cause=e,
        ) from e


def load_config(config_path: Path | None = None) -> Config:
    """
    Load the config file, or defaults when it is missing or unreadable.

    CHIMPFLOW_* environment variables (``__`` between nested keys) fill
    whatever the file leaves unset.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()

    _lock_down(path)
    try:
        return _parse(path)
    except ChimpflowError as e:
        logger.warning(f"{e.message}. Falling back to defaults.")
        return Config()


def require_config(config_path: Path) -> Config:
    """Strict variant for a path the user named explicitly."""
    if not config_path.exists():
        raise ChimpflowError(
            ErrorKind.CONFIG,
            f"Config file not found: {config_path}",
            component="config",
            operation="load",
        )
    return _parse(config_path)


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write camelCase JSON, owner-only."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    os.chmod(path.parent, PRIVATE_DIR)

    path.write_text(json.dumps(config.model_dump(by_alias=True), indent=2), encoding="utf-8")
    os.chmod(path, PRIVATE_FILE)
    logger.debug(f"Saved config to {path}")
