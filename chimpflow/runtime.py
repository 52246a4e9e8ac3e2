"""Process-wide runtime state.

Built once at startup and handed to every component that needs configuration
or telemetry. Nothing in chimpflow keeps module-level mutable state.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from chimpflow.config.loader import load_config
from chimpflow.config.schema import Config
from chimpflow.metrics import MetricsSink


@dataclass
class RuntimeState:
    """Configuration and telemetry shared by one running process."""
    config: Config
    metrics: MetricsSink = field(default_factory=MetricsSink)
    started_at: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        config: Optional[Config] = None,
        config_path: Optional[Path] = None,
    ) -> "RuntimeState":
        """Build runtime state from an explicit config or the config file."""
        return cls(config=config or load_config(config_path))

    @property
    def uptime(self) -> float:
        """Seconds since this state was created."""
        return time.time() - self.started_at
