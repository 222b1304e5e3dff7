"""Configuration module using pydantic-settings for environment validation."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every setting has a development default so the search engine can be
    imported without a populated environment. Use a .env file for local
    development.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ============================================
    # Application Settings
    # ============================================
    APP_NAME: str = Field(default="LexDraft Law Search", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    DEBUG: bool = Field(default=False, description="Debug mode flag")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # ============================================
    # MongoDB Atlas (article store + keyword index)
    # ============================================
    MONGO_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
        min_length=1,
    )
    MONGO_DB_NAME: str = Field(default="lawdb", description="Database holding the articles")
    MONGO_COLLECTION_NAME: str = Field(
        default="articles",
        description="Collection of statute articles keyed by record id",
    )
    ATLAS_SEARCH_INDEX: str = Field(
        default="law_search",
        description="Atlas Search index used for keyword queries",
    )
    ATLAS_SYNONYM_MAPPING: str = Field(
        default="law_synonyms",
        description="Atlas Search synonym mapping applied to concept queries",
    )
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = Field(default=5000, ge=100)
    MONGO_SOCKET_TIMEOUT_MS: int = Field(default=10000, ge=100)

    # ============================================
    # Qdrant Vector Database
    # ============================================
    QDRANT_URL: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
        min_length=1,
    )
    QDRANT_API_KEY: Optional[str] = Field(
        default=None,
        description="Qdrant API key for authentication",
    )
    QDRANT_COLLECTION_NAME: str = Field(
        default="law_articles",
        description="Qdrant collection name for article embeddings",
    )
    QDRANT_TIMEOUT_SECONDS: int = Field(default=10, ge=1)

    # ============================================
    # Embedding Endpoint
    # ============================================
    EMBEDDING_API_URL: str = Field(
        default="https://ai.mongodb.com/v1/embeddings",
        description="Remote embedding endpoint",
    )
    EMBEDDING_API_KEY: Optional[str] = Field(
        default=None,
        description="Bearer token for the embedding endpoint",
    )
    EMBEDDING_MODEL_NAME: str = Field(
        default="voyage-3.5",
        description="Embedding model name",
    )
    EMBEDDING_DIMENSION: int = Field(
        default=512,
        description="Embedding vector dimension",
    )
    EMBEDDING_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    EMBEDDING_BATCH_SIZE: int = Field(default=64, ge=1, le=1000)

    # ============================================
    # Retrieval Settings
    # ============================================
    MAX_SEARCH_LIMIT: int = Field(default=50, ge=1)
    DEFAULT_SEARCH_LIMIT: int = Field(
        default=5,
        description="Number of results returned when no limit is given",
        ge=1,
    )
    VECTOR_OVERSAMPLING: int = Field(
        default=10,
        description="Candidate multiplier for approximate nearest neighbour search",
        ge=1,
    )
    VECTOR_PATH_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Budget for embed + vector search before degrading to keyword-only",
        gt=0,
    )
    RETRY_ATTEMPTS: int = Field(
        default=2,
        description="Attempts per outbound call",
        ge=1,
        le=5,
    )
    CONTENT_PREVIEW_CHARS: int = Field(default=80, ge=0)
    LAW_SOURCE_URL: str = Field(
        default="https://law.moj.gov.tw/LawClass/LawAll.aspx?pcode=",
        description="Prefix of the official article source URL",
    )

    @field_validator("DEFAULT_SEARCH_LIMIT")
    @classmethod
    def validate_default_limit(cls, v: int, info) -> int:
        """Ensure the default limit fits under the maximum."""
        max_limit = info.data.get("MAX_SEARCH_LIMIT", 50)
        if v > max_limit:
            raise ValueError(
                f"DEFAULT_SEARCH_LIMIT ({v}) must not exceed MAX_SEARCH_LIMIT ({max_limit})"
            )
        return v

    @field_validator("MONGO_URL")
    @classmethod
    def validate_mongo_url(cls, v: str) -> str:
        """Basic MongoDB URL validation."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MONGO_URL must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("QDRANT_URL", "EMBEDDING_API_URL", "LAW_SOURCE_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Basic URL validation."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If an environment variable fails validation.
    """
    return Settings()


# Convenience export for direct import
settings = get_settings()
