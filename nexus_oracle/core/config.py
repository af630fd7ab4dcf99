"""Configuration management for the Nexus Oracle service."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # Sandboxed deployments set variables directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    ORACLE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Response generation
    ORACLE_CHAT_MODEL: str = Field(default="gpt-4o", description="Primary answer model")
    ORACLE_FALLBACK_MODEL: str = Field(
        default="gpt-4o-mini", description="Model retried once when the primary is overloaded"
    )
    ORACLE_TEMPERATURE: float = Field(default=0.7, description="Answer sampling temperature")
    ORACLE_MAX_TOKENS: int = Field(default=600, description="Max completion tokens per answer")
    LLM_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Overall budget for one language-model call"
    )

    # Intent parsing
    INTENT_MODEL: str = Field(default="gpt-4o-mini", description="Model for intent parsing")
    INTENT_MAX_TOKENS: int = Field(default=300, description="Max completion tokens for intents")

    # LLM throttling (per service instance)
    LLM_REQUESTS_PER_MINUTE: int = Field(default=50, description="LLM calls allowed per minute")
    LLM_TOKENS_PER_MINUTE: int = Field(
        default=90_000, description="Estimated LLM tokens allowed per minute"
    )

    # Endpoint throttling (per requester)
    ORACLE_REQUESTS_PER_MINUTE: int = Field(
        default=20, description="Oracle queries per minute per requester"
    )
    ORACLE_BURST_SIZE: int = Field(default=30, description="Burst allowance per requester")

    # Request limits
    MAX_QUERY_CHARS: int = Field(default=1000, description="Max characters in an Oracle query")
    MAX_UPDATE_CHARS: int = Field(default=5000, description="Max characters in a team update")
    MAX_STATUS_CHARS: int = Field(default=500, description="Max characters in a team status")
    MAX_BROADCAST_CHARS: int = Field(default=2000, description="Max characters in a broadcast")

    # Knowledge base (pass-through semantic search)
    KNOWLEDGE_SEARCH_ENABLED: bool = Field(
        default=True, description="Query the documents table through match_documents"
    )
    KNOWLEDGE_TOP_K: int = Field(default=5, description="Documents returned per query")
    KNOWLEDGE_MATCH_THRESHOLD: float = Field(
        default=0.7, description="Minimum similarity for knowledge documents"
    )
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Chat-platform bridge
    BRIDGE_SIGNING_SECRET: str | None = Field(
        default=None, description="Shared secret for bridge request signatures"
    )
    BRIDGE_MAX_SKEW_SECONDS: int = Field(
        default=300, description="Max age of a signed bridge request"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
