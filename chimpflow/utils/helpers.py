"""Small helpers shared across chimpflow."""

from datetime import datetime
from pathlib import Path
from typing import Union


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def preview(text: str, limit: int = 50) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def to_epoch(value: Union[float, int, datetime]) -> float:
    """Normalize a timestamp to POSIX seconds."""
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)
