"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "ragdesk"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated
    API_PREFIX: str = "/api"

    # ── User store ───────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./ragdesk.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0  # seconds to wait for a free connection

    # ── Security ─────────────────────────────────────────
    JWT_SECRET_KEY: str  # JWT signing key
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 1440  # 24 hours

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "openai"  # openai | gemini | groq
    LLM_MODEL: str = "gpt-4"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.1

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "openai"  # openai | gemini
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_MAX_ATTEMPTS: int = 4

    # ── Vector index (Qdrant) ────────────────────────────
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: str = ""
    QDRANT_COLLECTION: str = "support_docs"

    # ── RAG ──────────────────────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    RETRIEVAL_TOP_K: int = 4
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB
    FALLBACK_ANSWER: str = (
        "I don't have that information. Please contact support@yourdomain.com."
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
