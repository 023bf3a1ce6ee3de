"""Configuration management for the Context Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
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

    # Embedding provider (optional: without a key only the store RPC is tried)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")

    # Environment
    ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=768, description="Stored vector dimension")
    EMBEDDING_MAX_CHARS: int = Field(
        default=30_000, description="Input is truncated to this many characters"
    )
    EMBEDDING_API_BASE_URL: str = Field(
        default="https://api.openai.com/v1", description="OpenAI-compatible API base URL"
    )
    EMBEDDING_TIMEOUT_SECONDS: float = Field(default=30.0, description="Provider call timeout")

    # Retrieval configuration
    RAG_TOP_K: int = Field(default=5, description="Documents returned per query")
    RAG_MAX_CONTEXT_CHARS: int = Field(default=8_000, description="Context text budget")
    KEYWORD_SCAN_LIMIT: int = Field(
        default=100, description="Documents scanned by the keyword scoring tier"
    )

    # Keyword scoring weights
    SCORE_WEIGHT_WORD_RATIO: float = Field(default=0.4)
    SCORE_WEIGHT_TITLE: float = Field(default=0.3)
    SCORE_WEIGHT_SUMMARY: float = Field(default=0.2)
    SCORE_WEIGHT_BODY: float = Field(default=0.1)
    SCORE_PHRASE_TITLE: float = Field(default=0.2)
    SCORE_PHRASE_SUMMARY: float = Field(default=0.15)
    SCORE_PHRASE_BODY: float = Field(default=0.1)
    SCORE_RANK_DECAY_DIVISOR: float = Field(default=20.0)
    SCORE_RANK_DECAY_FLOOR: float = Field(default=0.5)
    SCORE_RANKED_MIN: float = Field(default=0.1)

    # Hybrid search blend
    SCORE_HYBRID_FULLTEXT: float = Field(default=0.4)
    SCORE_HYBRID_VECTOR: float = Field(default=0.6)

    # Workspace context configuration
    WORKSPACE_QUERY_TIMEOUT_SECONDS: float = Field(
        default=5.0, description="Per-domain query timeout"
    )
    WORKSPACE_VALUE_PREVIEW_CHARS: int = Field(
        default=500, description="Cap for previewed phase field values"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()


class ScoringWeights(BaseModel):
    """Tuning constants for the heuristic keyword scorer."""

    model_config = ConfigDict(frozen=True)

    word_ratio: float = 0.4
    title: float = 0.3
    summary: float = 0.2
    body: float = 0.1
    phrase_title: float = 0.2
    phrase_summary: float = 0.15
    phrase_body: float = 0.1
    rank_decay_divisor: float = 20.0
    rank_decay_floor: float = 0.5
    ranked_min_score: float = 0.1
    hybrid_fulltext_weight: float = 0.4
    hybrid_vector_weight: float = 0.6


class EngineConfig(BaseModel):
    """Per-call configuration for retrieval and context assembly.

    Resolved once at the top of an operation and passed down explicitly,
    so nothing below reads process-wide settings mid-call.
    """

    model_config = ConfigDict(frozen=True)

    openai_api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 768
    embedding_max_chars: int = 30_000
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_timeout_seconds: float = 30.0
    top_k: int = 5
    max_context_chars: int = 8_000
    keyword_scan_limit: int = 100
    workspace_query_timeout_seconds: float = 5.0
    workspace_value_preview_chars: int = 500
    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        """Snapshot the process settings into an immutable config."""
        return cls(
            openai_api_key=settings.OPENAI_API_KEY,
            embedding_model=settings.EMBEDDING_MODEL,
            embedding_dim=settings.EMBEDDING_DIM,
            embedding_max_chars=settings.EMBEDDING_MAX_CHARS,
            embedding_base_url=settings.EMBEDDING_API_BASE_URL,
            embedding_timeout_seconds=settings.EMBEDDING_TIMEOUT_SECONDS,
            top_k=settings.RAG_TOP_K,
            max_context_chars=settings.RAG_MAX_CONTEXT_CHARS,
            keyword_scan_limit=settings.KEYWORD_SCAN_LIMIT,
            workspace_query_timeout_seconds=settings.WORKSPACE_QUERY_TIMEOUT_SECONDS,
            workspace_value_preview_chars=settings.WORKSPACE_VALUE_PREVIEW_CHARS,
            weights=ScoringWeights(
                word_ratio=settings.SCORE_WEIGHT_WORD_RATIO,
                title=settings.SCORE_WEIGHT_TITLE,
                summary=settings.SCORE_WEIGHT_SUMMARY,
                body=settings.SCORE_WEIGHT_BODY,
                phrase_title=settings.SCORE_PHRASE_TITLE,
                phrase_summary=settings.SCORE_PHRASE_SUMMARY,
                phrase_body=settings.SCORE_PHRASE_BODY,
                rank_decay_divisor=settings.SCORE_RANK_DECAY_DIVISOR,
                rank_decay_floor=settings.SCORE_RANK_DECAY_FLOOR,
                ranked_min_score=settings.SCORE_RANKED_MIN,
                hybrid_fulltext_weight=settings.SCORE_HYBRID_FULLTEXT,
                hybrid_vector_weight=settings.SCORE_HYBRID_VECTOR,
            ),
        )


def resolve_config(config: EngineConfig | None = None) -> EngineConfig:
    """Return the given config, or build one from the environment."""
    if config is not None:
        return config
    return EngineConfig.from_settings(get_settings())
