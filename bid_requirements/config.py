"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Bid Requirements Extraction"
    debug: bool = False

    # ── LLM ──────────────────────────────────────────────
    groq_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 8192
    llm_timeout_seconds: float = 120.0

    # ── Retry / rate governance ──────────────────────────
    max_attempts: int = 3
    backoff_floor_seconds: float = 3.0
    backoff_jitter_seconds: float = 1.0
    rate_limit_interval_seconds: float = 2.0

    # ── Streaming ────────────────────────────────────────
    keepalive_interval_seconds: float = 12.0

    # ── Pipeline Limits ──────────────────────────────────
    run_timeout_seconds: float = 1800.0
    graph_recursion_limit: int = 500
    max_corpus_chars: int = 0  # 0 = pass the corpus through unmodified

    # ── Persistence ──────────────────────────────────────
    storage_backend: str = "memory"  # "memory" | "mongo"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "bid_requirements"
    local_storage_path: str = "./storage"

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
