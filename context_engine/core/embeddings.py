"""Embedding generation for documents and queries.

Tries the store-side ``embed`` RPC first and falls back to the OpenAI
embeddings API. Provider problems come back as a failed EmbeddingResult
instead of an exception.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI
from supabase import Client

from context_engine.core.config import EngineConfig, resolve_config
from context_engine.core.errors import ProviderFailure, StoreFailure
from context_engine.core.logging import get_logger
from context_engine.core.similarity import serialize_vector
from context_engine.db import documents as documents_db

logger = get_logger(__name__)


@dataclass
class EmbeddingResult:
    """Outcome of one embedding call: a vector or a failure, never both."""

    vector: list[float] | None = None
    failure: ProviderFailure | None = None

    @property
    def ok(self) -> bool:
        return self.vector is not None

    @classmethod
    def failed(cls, message: str, status_code: int | None = None) -> "EmbeddingResult":
        return cls(failure=ProviderFailure(message, status_code=status_code))


def normalize_dimensions(vector: list[float], dim: int) -> list[float]:
    """Truncate or zero-pad a vector to exactly ``dim`` components."""
    if len(vector) == dim:
        return vector

    logger.warning(f"Embedding has {len(vector)} dimensions, expected {dim}; adjusting")
    adjusted = list(vector[:dim])
    adjusted.extend([0.0] * (dim - len(adjusted)))
    return adjusted


def _is_numeric_vector(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in value
    )


async def _embed_via_store(text: str, client: Client | None, dim: int) -> list[float] | None:
    """Primary path: the store's own embed function. Only exact-dimension output counts."""
    try:
        data = await asyncio.to_thread(documents_db.call_embed_rpc, text, client)
    except StoreFailure as e:
        logger.debug(f"Store embed RPC unavailable: {e}")
        return None

    if _is_numeric_vector(data) and len(data) == dim:
        return [float(v) for v in data]
    return None


def _get_client(config: EngineConfig) -> AsyncOpenAI:
    """Get an OpenAI client for the configured endpoint."""
    return AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.embedding_base_url,
        timeout=config.embedding_timeout_seconds,
    )


async def _embed_via_provider(text: str, config: EngineConfig) -> EmbeddingResult:
    if not config.openai_api_key:
        logger.error("No embedding API available - OPENAI_API_KEY not set")
        return EmbeddingResult.failed("OPENAI_API_KEY not configured")

    client = _get_client(config)
    try:
        response = await client.embeddings.create(
            model=config.embedding_model,
            input=text,
            dimensions=config.embedding_dim,
        )
    except APIStatusError as e:
        logger.error(
            "Embedding provider returned an error",
            extra={"extra_data": {"status": e.status_code, "error": e.body}},
        )
        return EmbeddingResult.failed(
            f"Embedding provider returned {e.status_code}",
            status_code=e.status_code,
        )
    except APIConnectionError as e:
        logger.error(f"Embedding request failed: {e}")
        return EmbeddingResult.failed(f"Embedding request failed: {e}")

    try:
        embedding = response.data[0].embedding
    except (IndexError, AttributeError, TypeError):
        embedding = None

    if not _is_numeric_vector(embedding) or not embedding:
        logger.error("Invalid embedding format from provider")
        return EmbeddingResult.failed("Embedding missing from provider response")

    return EmbeddingResult(vector=[float(v) for v in embedding])


async def embed_text(
    text: str,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> EmbeddingResult:
    """
    Embed text into a fixed-dimension vector.

    Long input is truncated, never rejected. Empty input fails without
    any network call. Output is always normalized to the configured
    dimension.

    Args:
        text: Text to embed
        client: Supabase client for the store-side RPC
        config: Engine config (resolved from settings when omitted)

    Returns:
        EmbeddingResult with either ``vector`` or ``failure`` set
    """
    config = resolve_config(config)

    if not text or not text.strip():
        logger.warning("Empty text provided for embedding")
        return EmbeddingResult.failed("Empty text")

    truncated = text[: config.embedding_max_chars]

    vector = await _embed_via_store(truncated, client, config.embedding_dim)
    if vector is not None:
        return EmbeddingResult(vector=vector)

    result = await _embed_via_provider(truncated, config)
    if not result.ok:
        return result

    return EmbeddingResult(vector=normalize_dimensions(result.vector, config.embedding_dim))


async def embed_query(
    query: str,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> EmbeddingResult:
    """Embed a search query."""
    return await embed_text(query, client=client, config=config)


# =============================================================================
# Document embeddings
# =============================================================================


def build_document_text(title: str, summary: str | None, body: str) -> str:
    """Combine title, summary and body into the text that gets embedded."""
    parts = [title]
    if summary:
        parts.append(summary)
    parts.append(body)
    return "\n\n".join(parts)


def content_changed(old: dict[str, Any], new: dict[str, Any]) -> bool:
    """True when any embedded field differs. No partial invalidation."""
    return any(old.get(key) != new.get(key) for key in ("title", "summary", "body"))


async def embed_document(
    document: dict[str, Any],
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> EmbeddingResult:
    """Embed a document from its title, summary and body."""
    text = build_document_text(
        document.get("title") or "",
        document.get("summary"),
        document.get("body") or "",
    )
    return await embed_text(text, client=client, config=config)


async def generate_and_store_embedding(
    document_id: str,
    document: dict[str, Any],
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> bool:
    """
    Embed a document and persist the vector in bracketed string form.

    Returns:
        True if a vector was generated and stored

    Raises:
        StoreFailure: If writing the vector fails
    """
    result = await embed_document(document, client=client, config=config)
    if not result.ok:
        logger.warning(
            f"Failed to generate embedding for document {document_id}: {result.failure}",
            extra={"document_id": document_id},
        )
        return False

    await asyncio.to_thread(
        documents_db.store_document_vector,
        document_id,
        serialize_vector(result.vector),
        client,
    )
    return True


async def update_embedding_if_changed(
    document_id: str,
    old_document: dict[str, Any],
    new_document: dict[str, Any],
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> bool:
    """
    Recompute a document's embedding when its content changed.

    Returns:
        True if the embedding was regenerated and stored
    """
    if not content_changed(old_document, new_document):
        return False

    return await generate_and_store_embedding(
        document_id, new_document, client=client, config=config
    )
