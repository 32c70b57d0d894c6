"""Pydantic models for configuration."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, SecretStr, field_validator, model_validator

DEFAULT_STOP_WORDS = [
    "的", "了", "吗", "呢", "啊", "吧", "嘛",
    "最新", "详细", "具体", "完整", "全部", "所有",
    "查询", "信息", "数据", "资料", "列表", "名单", "项目",
    "推荐", "有哪些", "怎么样", "如何",
]


class ModelConfig(BaseModel):
    """Model configuration for any OpenAI-compatible chat endpoint."""

    name: str = Field(..., description="Configuration name (e.g., primary, backup-1)")
    provider: Literal["openai", "bailian", "custom"] = Field(
        ..., description="Provider type"
    )
    base_url: HttpUrl = Field(..., description="API base URL")
    api_key: SecretStr = Field(..., description="API key (encrypted in memory)")
    model_id: str = Field(..., description="Model identifier, e.g. qwen-plus")
    is_primary: bool = Field(default=False, description="Whether this is the primary model")
    timeout: float = Field(default=60.0, ge=1.0, le=300.0, description="Request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, le=5, description="SDK-level retry attempts")
    priority: int = Field(default=0, ge=0, description="Backup priority (lower = higher priority)")

    def get_masked_key(self) -> str:
        """Return masked API key for logging."""
        key = self.api_key.get_secret_value()
        if len(key) <= 8:
            return "***"
        return f"{key[:4]}...{key[-4:]}"


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Allowed CORS origins"
    )
    reload: bool = Field(default=False, description="Enable auto-reload (dev mode)")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log format")
    file: Optional[str] = Field(default="logs/agenthub.log", description="Log file path (None disables)")
    max_size: str = Field(default="10MB", description="Max log file size")
    backup_count: int = Field(default=5, ge=0, description="Number of backup files")
    console: bool = Field(default=True, description="Output to console")


class GenerationConfig(BaseModel):
    """Sampling settings for chat and auxiliary completions.

    A low temperature biases the model toward tool use and factual answers.
    """

    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=3000, ge=1, le=32000)
    tool_choice: Literal["auto", "none"] = Field(default="auto")
    title_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    title_max_tokens: int = Field(default=50, ge=1, le=500)
    summary_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    summary_max_tokens: int = Field(default=600, ge=1, le=4000)


class SessionConfig(BaseModel):
    """In-memory session and transcript bounds."""

    recent_message_count: int = Field(
        default=10, ge=1, le=200,
        description="Persisted messages replayed into a rehydrated transcript"
    )
    max_conversation_messages: int = Field(
        default=40, ge=2, le=1000,
        description="Compaction triggers when user/assistant turns exceed this"
    )
    retained_conversation_messages: int = Field(
        default=40, ge=1, le=1000,
        description="User/assistant turns kept after compaction"
    )
    max_tool_rounds: int = Field(
        default=8, ge=1, le=50,
        description="Tool rounds per turn before tools are withheld"
    )
    tool_preview_length: int = Field(default=100, ge=10, le=2000)

    @model_validator(mode="after")
    def validate_retention(self) -> "SessionConfig":
        """Compaction cannot retain more turns than its own ceiling."""
        if self.retained_conversation_messages > self.max_conversation_messages:
            raise ValueError(
                "retained_conversation_messages must not exceed max_conversation_messages"
            )
        return self


class GuardConfig(BaseModel):
    """Per-conversation limits for search-class tools."""

    max_searches_per_conversation: int = Field(default=3, ge=1, le=100)
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_query_length: int = Field(default=30, ge=1, le=500)
    stop_words: list[str] = Field(default_factory=lambda: list(DEFAULT_STOP_WORDS))
    guarded_tools: list[str] = Field(default_factory=lambda: ["search_web"])


class SummaryConfig(BaseModel):
    """Durable summary refresh policy."""

    trigger_min_messages: int = Field(default=12, ge=2)
    trigger_interval: int = Field(default=10, ge=1)
    trigger_offset: int = Field(default=2, ge=0)
    keep_recent_messages: int = Field(default=6, ge=0)
    max_chars: int = Field(default=400, ge=50, le=4000)

    @model_validator(mode="after")
    def validate_offset(self) -> "SummaryConfig":
        """The offset must be a valid remainder of the interval."""
        if self.trigger_offset >= self.trigger_interval:
            raise ValueError("trigger_offset must be smaller than trigger_interval")
        return self


class ExternalApisConfig(BaseModel):
    """Third-party API endpoints and credentials."""

    searxng_url: str = Field(default="http://localhost:8888")
    search_timeout: float = Field(default=15.0, ge=1.0, le=120.0)
    search_min_interval: float = Field(default=2.5, ge=0.0, description="Seconds between search requests")
    juhe_calendar_key: Optional[SecretStr] = None
    juhe_horoscope_key: Optional[SecretStr] = None
    juhe_timeout: float = Field(default=10.0, ge=1.0, le=60.0)
    cache_ttl_seconds: int = Field(default=1800, ge=0)

    @field_validator("searxng_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Conversation store configuration."""

    database_url: str = Field(default="sqlite+aiosqlite:///./agenthub.db")
    echo: bool = Field(default=False, description="Echo SQL statements")


class Config(BaseModel):
    """Root configuration model."""

    models: list[ModelConfig] = Field(..., min_length=1, description="Model configurations")
    server: ServerConfig = Field(default_factory=ServerConfig, description="Server config")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging config")
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    guard: GuardConfig = Field(default_factory=GuardConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    external_apis: ExternalApisConfig = Field(default_factory=ExternalApisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("models")
    @classmethod
    def validate_primary_model(cls, v: list[ModelConfig]) -> list[ModelConfig]:
        """Ensure exactly one primary model exists."""
        primaries = [m for m in v if m.is_primary]
        if len(primaries) != 1:
            raise ValueError(f"Must have exactly one primary model, found {len(primaries)}")
        return v

    @model_validator(mode="after")
    def validate_backup_priorities(self) -> "Config":
        """Validate backup model priorities."""
        priorities = [m.priority for m in self.models if not m.is_primary]
        if len(priorities) != len(set(priorities)):
            raise ValueError("Backup model priorities must be unique")
        return self

    def get_primary_model(self) -> ModelConfig:
        """Get the primary model configuration."""
        for model in self.models:
            if model.is_primary:
                return model
        raise RuntimeError("No primary model found")

    def get_backup_models(self) -> list[ModelConfig]:
        """Get backup models sorted by priority."""
        backups = [m for m in self.models if not m.is_primary]
        return sorted(backups, key=lambda m: m.priority)

    def get_model_by_name(self, name: str) -> ModelConfig | None:
        """Get model configuration by name."""
        for model in self.models:
            if model.name == name:
                return model
        return None
