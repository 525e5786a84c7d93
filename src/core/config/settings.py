# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the learner
memory engine. Settings are loaded from environment variables with sensible
defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.memory.recent_memories_count)
    5
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational database configuration.

    Memories, conversation sessions and learner profiles live in the
    same database.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        url_override: Full async URL, used instead of the components when set.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    user: str = "learner_memory"
    password: SecretStr = SecretStr("learner_memory_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "learner_memory"
    pool_size: int = 10
    max_overflow: int = 20
    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the background task broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is not None and self.password.get_secret_value():
            pwd = self.password.get_secret_value()
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class LLMSettings(BaseSettings):
    """LLM provider configuration using LiteLLM.

    LiteLLM handles provider routing based on the model prefix
    (e.g. 'ollama/', 'gemini/', or a bare OpenAI model name).

    Attributes:
        model: Model used for memory extraction, in LiteLLM format.
        api_base: Optional API base URL (required for remote Ollama).
        api_key: Optional API key passed directly to LiteLLM.
        request_timeout: Request timeout in seconds.
        max_retries: Maximum retry attempts.
        temperature: Sampling temperature for extraction calls.
        max_tokens: Maximum tokens for extraction responses.
    """

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        extra="ignore",
    )

    model: str = "gpt-4o-mini"
    api_base: str | None = None
    api_key: SecretStr | None = None
    request_timeout: float = 60.0
    max_retries: int = 3
    temperature: float = 0.2
    max_tokens: int = 1024


class EmbeddingSettings(BaseSettings):
    """Embedding model configuration.

    Uses LiteLLM for API-based embedding generation (Ollama, OpenAI, etc.).

    Attributes:
        model: Model name in LiteLLM format (e.g., 'text-embedding-3-small').
        dimension: Vector dimension (must match model output).
        batch_size: Batch size for embedding generation.
        api_base: Optional API base URL.
        api_key: Optional API key.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_",
        extra="ignore",
    )

    model: str = "text-embedding-3-small"
    dimension: int = 1536
    batch_size: int = 32
    api_base: str | None = None
    api_key: SecretStr | None = None


class MemorySettings(BaseSettings):
    """Learner memory retrieval and extraction configuration.

    Attributes:
        recent_memories_count: Number of most recent memories considered.
        high_importance_threshold: Minimum importance for the importance set.
        high_importance_limit: Maximum memories in the importance set.
        semantic_search_limit: Maximum memories in the semantic set.
        min_semantic_similarity: Cosine similarity floor for semantic matches.
        max_total_memories: Cap on the fused result list.
        extraction_interval_minutes: Interval of the scheduled extraction sweep.
        sweep_max_age_hours: Optional bound on how old unprocessed messages
            may be for the scheduled sweep to pick their learner up. None
            retries every lagging session.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        extra="ignore",
    )

    recent_memories_count: int = Field(default=5, ge=1)
    high_importance_threshold: int = Field(default=4, ge=1, le=5)
    high_importance_limit: int = Field(default=5, ge=1)
    semantic_search_limit: int = Field(default=10, ge=1)
    min_semantic_similarity: float = Field(default=0.7, ge=-1.0, le=1.0)
    max_total_memories: int = Field(default=20, ge=1)
    extraction_interval_minutes: int = Field(default=30, ge=1)
    sweep_max_age_hours: int | None = Field(default=None, ge=1)


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        processes: Number of worker processes.
        threads: Number of threads per process.
        test_mode: Use dramatiq's StubBroker instead of Redis.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    processes: int = 2
    threads: int = 4
    test_mode: bool = Field(
        default=False,
        validation_alias="DRAMATIQ_TEST_MODE",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        llm: LLM provider settings.
        embedding: Embedding model settings.
        memory: Memory retrieval and extraction settings.
        worker: Background worker settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
