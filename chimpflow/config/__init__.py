"""Configuration module for chimpflow."""

from chimpflow.config.loader import get_config_path, load_config, require_config, save_config
from chimpflow.config.schema import Config, ConversationConfig, KnowledgeConfig

__all__ = [
    "Config",
    "ConversationConfig",
    "KnowledgeConfig",
    "load_config",
    "require_config",
    "save_config",
    "get_config_path",
]
