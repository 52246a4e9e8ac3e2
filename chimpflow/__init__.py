"""chimpflow - conversation-aware knowledge pipelines for chat assistants."""

__version__ = "0.1.0"
__logo__ = "🐒"
