"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationConfig(Base):
    """Relevance scoring and context selection."""
    memory_minutes: int = 5  # Messages older than 3x this get the floor weight
    decay_rate: float = 0.1  # Per-minute exponential decay
    min_relevance_threshold: float = 0.3
    bot_directed_boost: float = 0.4
    reply_chain_boost: float = 0.3
    bot_directed_threshold: float = 0.4
    max_weighted_context_tokens: int = 2000
    ambient_context_ratio: float = 0.2
    bot_names: list[str] = Field(default_factory=lambda: ["chimp", "chimpgpt", "bot"])


class KnowledgeConfig(Base):
    """Knowledge pipeline configuration."""
    enabled: bool = True
    store_path: str = "~/.chimpflow/knowledge-store.json"
    owner_id: str = ""  # Platform user id allowed to receive generated code
    owner_only_code: bool = True
    web_search_enabled: bool = True
    docs_fetch_enabled: bool = True
    doc_sites: list[str] = Field(default_factory=lambda: ["github", "stackoverflow", "mdn"])
    max_search_results: int = 5
    confidence_threshold: float = 60.0
    max_response_tokens: int = 1500
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    source_timeout: float = 15.0  # Seconds per search/doc call
    save_debounce_seconds: float = 2.0

    @property
    def store_file(self) -> Path:
        """Get expanded knowledge store path."""
        return Path(self.store_path).expanduser()


class ProviderConfig(Base):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None


class LoggingConfig(Base):
    """Log sink configuration."""
    level: str = "INFO"
    file: str | None = None
    verbose: bool = False


class Config(BaseSettings):
    """Root configuration for chimpflow."""
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CHIMPFLOW_",
        env_nested_delimiter="__",
        populate_by_name=True,
    )
