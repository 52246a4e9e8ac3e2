"""Utility functions for chimpflow."""

from chimpflow.utils.helpers import ensure_dir, preview, to_epoch
from chimpflow.utils.tasks import Debouncer

__all__ = [
    "ensure_dir",
    "preview",
    "to_epoch",
    "Debouncer",
]
