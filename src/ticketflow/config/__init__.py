"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticketflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/tickets",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Job Queue ==========
    embedding_queue_name: str = Field(
        default="embedding_jobs",
        description="Queue holding embedding jobs for tickets and document chunks"
    )
    classification_queue_name: str = Field(
        default="classification_jobs",
        description="Queue holding ticket classification jobs"
    )
    embedding_batch_size: int = Field(default=10, description="Messages read per embedding run", ge=1, le=100)
    embedding_visibility_timeout: int = Field(
        default=30,
        description="Seconds an embedding job stays invisible after being read",
        ge=1
    )
    classification_batch_size: int = Field(default=3, description="Messages read per classification run", ge=1, le=100)
    classification_visibility_timeout: int = Field(
        default=60,
        description="Seconds a classification job stays invisible after being read",
        ge=1
    )
    max_deliveries: int = Field(
        default=5,
        description="Deliveries after which a still-failing job is dropped from the queue",
        ge=1
    )

    # ========== Crawler ==========
    crawl_seed_urls: List[str] = Field(
        default=["https://docs.atlan.com/", "https://developer.atlan.com/"],
        description="Start URLs for documentation discovery"
    )
    crawl_max_pages: int = Field(default=200, description="Maximum pages scraped per crawl", ge=1)
    crawl_batch_size: int = Field(default=5, description="Pages fetched concurrently while scraping", ge=1, le=50)
    crawl_discovery_batch_size: int = Field(
        default=8,
        description="Pages fetched concurrently per link discovery wave",
        ge=1,
        le=50
    )
    crawl_max_depth: int = Field(default=3, description="Maximum link discovery depth", ge=1, le=10)
    crawl_batch_delay_seconds: float = Field(
        default=1.0,
        description="Politeness delay between scrape batches",
        ge=0.0
    )
    crawl_discovery_delay_seconds: float = Field(
        default=0.2,
        description="Politeness delay between discovery waves",
        ge=0.0
    )
    crawl_timeout_seconds: float = Field(default=15.0, description="HTTP timeout per page fetch", gt=0)
    crawl_user_agent: str = Field(
        default="AtlanDocsBot/1.0 (Documentation Scraper)",
        description="User-Agent header sent by the crawler"
    )

    # ========== Chunking ==========
    chunk_size: int = Field(
        default=1000,
        description="Character size for document chunks",
        ge=100
    )
    chunk_overlap: int = Field(
        default=200,
        description="Overlap between document chunks",
        ge=0
    )

    # ========== Embedding Providers ==========
    default_embedding_provider: str = Field(
        default="fireworks",
        description="Name of the embedding provider tried first"
    )
    embedding_model: str = Field(
        default="nomic-ai/nomic-embed-text-v1",
        description="Embedding model requested from every provider"
    )
    fireworks_base_url: str = Field(default="https://api.fireworks.ai/inference/v1/")
    fireworks_api_key: Optional[str] = Field(default=None, description="Fireworks API key")
    together_base_url: str = Field(default="https://api.together.xyz/v1/")
    together_api_key: Optional[str] = Field(default=None, description="Together API key")
    embedding_timeout_seconds: float = Field(default=30.0, description="Timeout for embedding calls", gt=0)

    # ========== Text Generation ==========
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible base URL for response drafting"
    )
    llm_api_key: Optional[str] = Field(default=None, description="API key for the text-generation provider")
    llm_model: str = Field(default="gpt-4o-mini", description="Model used to draft responses")
    llm_temperature: float = Field(
        default=0.3,
        description="Default temperature for LLM",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=800,
        description="Default max tokens for LLM generation",
        ge=1,
        le=8000
    )

    # ========== Classification ==========
    topic_threshold: float = Field(default=0.55, description="Minimum score for a topic tag", ge=-1.0, le=1.0)
    max_topics: int = Field(default=3, description="Maximum topic tags per ticket", ge=1)
    similar_ticket_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    similar_ticket_count: int = Field(default=5, ge=1, le=20)
    documentation_threshold: float = Field(default=0.4, ge=-1.0, le=1.0)
    documentation_count: int = Field(default=5, ge=1, le=20)
    reference_labels_path: Path = Field(
        default=Path("reference_labels.yaml"),
        description="YAML file listing topic/sentiment/priority reference labels"
    )

    # ========== Scheduler ==========
    pipeline_schedule_enabled: bool = Field(
        default=False,
        description="Drain the queues on an in-process interval (off for serverless)"
    )
    pipeline_interval_seconds: int = Field(
        default=60,
        description="Seconds between scheduled queue drains",
        ge=5
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("chunk_overlap")
    @classmethod
    def validate_overlap(cls, v: int, info) -> int:
        """Overlap must leave room for new words in every chunk."""
        chunk_size = info.data.get("chunk_size")
        if chunk_size is not None and v >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return v

    @field_validator("fireworks_base_url", "together_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Provider endpoints are built by appending to the base URL."""
        return v if v.endswith("/") else v + "/"


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket statuses written by the pipeline."""
    PENDING = "pending"
    PROCESSING = "processing"
    CLASSIFIED = "classified"


class JobTable(str):
    """Tables an embedding job may target."""
    TICKETS = "tickets"
    DOCUMENT_CHUNKS = "document_chunks"
