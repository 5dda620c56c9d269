"""Configuration management for docgen."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OpenAISettings(BaseSettings):
    """OpenAI Responses API settings."""

    api_key: str = Field(default="", alias="OPENAI_API_KEY")
    organization: str = Field(default="", alias="OPENAI_ORGANIZATION")
    base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    timeout: float = Field(default=120.0, alias="OPENAI_TIMEOUT")

    # Model roles
    planner_model: str = Field(default="computer-use-preview", alias="PLANNER_MODEL")
    extractor_model: str = Field(default="o4-mini", alias="EXTRACTOR_MODEL")
    generator_model: str = Field(default="gpt-5", alias="GENERATOR_MODEL")
    chat_model: str = Field(default="gpt-4o-mini", alias="CHAT_MODEL")
    embedding_model: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL")


class BrowserSettings(BaseSettings):
    """Browser automation settings."""

    display_width: int = Field(default=1024, alias="DISPLAY_WIDTH")
    display_height: int = Field(default=768, alias="DISPLAY_HEIGHT")
    headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    navigation_timeout_ms: int = Field(default=30000, alias="BROWSER_TIMEOUT_MS")

    # Screenshots are downscaled JPEGs to keep planner round-trips small
    screenshot_quality: int = 60
    screenshot_max_width: int = 1280
    screenshot_max_height: int = 800
    blocked_resource_types: list[str] = Field(default_factory=lambda: ["font", "media"])


class StageConfig(BaseModel):
    """Worker pool settings for one queue stage."""

    concurrency: int = 1
    max_per_second: int = 5
    attempts: int = 3
    backoff_seconds: float = 2.0


class QueueSettings(BaseSettings):
    """Extraction job queue settings (nested delimiter QUEUE__)."""

    curl: StageConfig = Field(
        default_factory=lambda: StageConfig(concurrency=3, max_per_second=5)
    )
    embeddings: StageConfig = Field(
        default_factory=lambda: StageConfig(concurrency=5, max_per_second=10)
    )

    completed_retention_seconds: int = Field(default=3600, alias="QUEUE_COMPLETED_RETENTION_SECONDS")
    completed_retention_count: int = Field(default=100, alias="QUEUE_COMPLETED_RETENTION_COUNT")
    failed_retention_seconds: int = Field(default=86400, alias="QUEUE_FAILED_RETENTION_SECONDS")


class StoreSettings(BaseSettings):
    """Knowledge base storage settings."""

    database_path: Path = Field(default=Path("data/docgen.db"), alias="DATABASE_PATH")


class EmbeddingSettings(BaseSettings):
    """Embedding and similarity search settings."""

    provider: str = Field(default="local", alias="EMBEDDING_PROVIDER")
    local_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2", alias="LOCAL_EMBEDDING_MODEL"
    )
    similarity_floor: float = Field(default=0.5, alias="SIMILARITY_FLOOR")
    default_limit: int = Field(default=4, alias="SEARCH_LIMIT")


class CrawlSettings(BaseSettings):
    """Agent control loop settings."""

    # 0 disables the step budget and leaves termination to the planner
    max_steps: int = Field(default=0, alias="CRAWL_MAX_STEPS")

    fast_delay_ms: int = 100
    input_delay_ms: int = 200
    scroll_delay_ms: int = 250
    click_delay_ms: int = 400
    default_delay_ms: int = 300


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",  # QUEUE__CURL__CONCURRENCY=2
    )

    environment: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs/docgen", alias="LOG_DIR")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"], alias="ALLOWED_ORIGINS")

    # Sub-settings
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)

    @property
    def is_production(self) -> bool:
        """True when running with APP_ENV=production."""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
