"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for available settings.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ============================================
    # Application
    # ============================================
    app_name: str = "RAG Studio"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"
    allowed_origins: list[str] = ["http://localhost:3000"]

    # ============================================
    # Hugging Face (embeddings, OCR, chat)
    # ============================================
    huggingface_api_key: str = ""
    huggingface_base_url: str = "https://api-inference.huggingface.co"
    # OpenAI-compatible router used for chat completions and vision OCR
    huggingface_router_url: str = "https://router.huggingface.co/v1"

    # ============================================
    # Ollama
    # ============================================
    ollama_base_url: str = "http://localhost:11434"
    ollama_api_key: str = ""

    # ============================================
    # Document Store
    # ============================================
    max_total_size_mb: float = Field(default=50, gt=0, description="Total in-memory budget")
    max_document_size_mb: float = Field(default=10, gt=0, description="Per-document budget")

    @property
    def max_total_size_bytes(self) -> int:
        return int(self.max_total_size_mb * MB)

    @property
    def max_document_size_bytes(self) -> int:
        return int(self.max_document_size_mb * MB)

    # ============================================
    # Chunking defaults
    # ============================================
    chunk_size: int = 500
    chunk_overlap: int = 50
    chunk_strategy: str = "sentence"
    min_chunk_size: int = 50

    # ============================================
    # Embeddings
    # ============================================
    default_embedding_model: str = Field(
        default="all-MiniLM-L6-v2", description="Registry name of the default embedding model"
    )
    embedding_batch_size: int = Field(default=10, ge=1)
    embedding_retry_attempts: int = Field(default=3, ge=1)
    embedding_retry_delay: float = Field(
        default=1.0, ge=0, description="Backoff step in seconds (attempt n waits n * delay)"
    )
    embedding_batch_delay: float = Field(
        default=0.2, ge=0, description="Pause after each batch to respect provider rate limits"
    )
    embedding_max_concurrency: int = Field(
        default=1, ge=1, description="Batches in flight at once (1 = strictly sequential)"
    )

    # ============================================
    # Extraction
    # ============================================
    ocr_model: str = "deepseek-ai/DeepSeek-OCR"
    pdf_min_text_length: int = Field(
        default=100, description="Below this many characters a PDF is treated as scanned"
    )

    # ============================================
    # Generation
    # ============================================
    default_generation_provider: str = "ollama"
    default_generation_model: str = "gpt-oss:20b"
    generation_max_tokens: int = 500

    # ============================================
    # Logging
    # ============================================
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        """Only console and json output are supported."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
