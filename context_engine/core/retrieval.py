"""Retrieval cascade: the one entry point every knowledge-base flow calls.

Three strategies, tried strictly in order until one returns something:
  1. vector:    embed the query, cosine against stored document vectors
  2. full_text: the store's native text-search operator, rank-decay scored
  3. keyword:   heuristic keyword scoring over a capped scan

Tiers never run concurrently and their outputs are never merged. A tier
that fails (provider or store error) falls through exactly like one that
found nothing; only when every tier *failed* does the caller get
RetrievalUnavailable. An empty list is a valid answer.

Usage:
    from context_engine.core.retrieval import DocumentScope, retrieve

    candidates = await retrieve("refund policy", DocumentScope.tenant(org_id), top_k=5)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from supabase import Client

from context_engine.core.config import EngineConfig, ScoringWeights, resolve_config
from context_engine.core.embeddings import embed_query
from context_engine.core.errors import (
    ParseFailure,
    ProviderFailure,
    RetrievalUnavailable,
    StoreFailure,
    TierFailure,
)
from context_engine.core.logging import get_logger, log_with_context
from context_engine.core.scoring import score_keyword_match, score_ranked_match
from context_engine.core.similarity import cosine_similarities, parse_vector
from context_engine.db import documents as documents_db

logger = get_logger(__name__)


# =============================================================================
# Models
# =============================================================================


@dataclass(frozen=True)
class DocumentScope:
    """Tenant-isolation rule for a query.

    organization_id=None means global documents only; otherwise the
    tenant's own documents plus global ones are eligible.
    """

    organization_id: str | None = None

    @classmethod
    def tenant(cls, organization_id: str) -> DocumentScope:
        return cls(organization_id=organization_id)

    @classmethod
    def global_only(cls) -> DocumentScope:
        return cls(organization_id=None)

    @property
    def is_global(self) -> bool:
        return self.organization_id is None


@dataclass
class RetrievalCandidate:
    """A ranked document for one query. Never persisted."""

    document: dict[str, Any]
    relevance_score: float
    tier: str = ""

    @property
    def document_id(self) -> str:
        return str(self.document.get("id", ""))


@dataclass
class RetrievalContext:
    """Per-call collaborators shared by every tier."""

    config: EngineConfig
    client: Client | None = None


@dataclass
class RetrievalOutcome:
    """What the cascade produced and which tiers failed on the way."""

    candidates: list[RetrievalCandidate] = field(default_factory=list)
    tier: str | None = None
    failures: list[TierFailure] = field(default_factory=list)


Strategy = Callable[
    [str, DocumentScope, int, RetrievalContext], Awaitable[list[RetrievalCandidate]]
]


# =============================================================================
# Tier 1: Vector similarity
# =============================================================================


def rank_by_vector(
    rows: list[dict[str, Any]],
    query_vector: list[float],
    top_k: int,
    tier: str = "vector",
) -> list[RetrievalCandidate]:
    """Cosine-rank rows by their stored vector; unparseable vectors are skipped."""
    parsed_rows: list[dict[str, Any]] = []
    vectors: list[list[float]] = []
    for row in rows:
        try:
            vectors.append(parse_vector(row.get("vector")))
        except ParseFailure as e:
            logger.warning(
                f"Skipping document with unparseable vector: {e}",
                extra={"document_id": row.get("id")},
            )
            continue
        parsed_rows.append(row)

    scored = list(zip(cosine_similarities(query_vector, vectors), parsed_rows))
    scored.sort(key=lambda pair: pair[0], reverse=True)

    return [
        RetrievalCandidate(
            document=row,
            relevance_score=max(0.0, min(1.0, similarity)),
            tier=tier,
        )
        for similarity, row in scored[:top_k]
    ]


async def vector_search(
    query: str,
    scope: DocumentScope,
    top_k: int,
    ctx: RetrievalContext,
) -> list[RetrievalCandidate]:
    """Embed the query and rank stored document vectors by cosine similarity."""
    embedding = await embed_query(query, client=ctx.client, config=ctx.config)
    if not embedding.ok:
        raise embedding.failure

    # Fetch a superset; some rows may not parse
    rows = await asyncio.to_thread(
        documents_db.list_vector_candidates, scope.organization_id, top_k * 3, ctx.client
    )
    if not rows:
        logger.warning(
            "No documents with embeddings found",
            extra={"tier": "vector", "extra_data": {"scope": scope.organization_id or "global"}},
        )
        return []

    results = rank_by_vector(rows, embedding.vector, top_k)
    logger.debug(
        f"Vector search ranked {len(results)} of {len(rows)} documents",
        extra={"tier": "vector"},
    )
    return results


# =============================================================================
# Tier 2: Full-text search
# =============================================================================

_TSQUERY_UNSAFE = re.compile(r"[^\w\-]+", re.UNICODE)


def build_search_terms(query: str) -> str:
    """AND-join sanitized query terms for the store's text-search operator."""
    terms = [_TSQUERY_UNSAFE.sub("", term) for term in query.split()]
    return " & ".join(term for term in terms if term)


async def full_text_search(
    query: str,
    scope: DocumentScope,
    top_k: int,
    ctx: RetrievalContext,
) -> list[RetrievalCandidate]:
    """Native full-text search, rescored with rank decay."""
    terms = build_search_terms(query)
    if not terms:
        return []

    rows = await asyncio.to_thread(
        documents_db.search_full_text, terms, scope.organization_id, top_k, ctx.client
    )

    weights = ctx.config.weights
    return [
        RetrievalCandidate(
            document=row,
            relevance_score=score_ranked_match(row, query, index, weights),
            tier="full_text",
        )
        for index, row in enumerate(rows)
    ]


# =============================================================================
# Tier 3: Heuristic keyword scoring
# =============================================================================


def rank_by_keywords(
    rows: list[dict[str, Any]],
    query: str,
    top_k: int,
    weights: ScoringWeights,
) -> list[RetrievalCandidate]:
    """Keyword-score rows; documents without any matching word are dropped."""
    results: list[RetrievalCandidate] = []
    for row in rows:
        score = score_keyword_match(row, query, weights)
        if score is None:
            continue
        results.append(RetrievalCandidate(document=row, relevance_score=score, tier="keyword"))

    results.sort(key=lambda c: c.relevance_score, reverse=True)
    return results[:top_k]


async def keyword_search(
    query: str,
    scope: DocumentScope,
    top_k: int,
    ctx: RetrievalContext,
) -> list[RetrievalCandidate]:
    """Score a capped scan of in-scope documents by keyword overlap."""
    rows = await asyncio.to_thread(
        documents_db.list_published_documents,
        scope.organization_id,
        ctx.config.keyword_scan_limit,
        ctx.client,
    )
    if not rows:
        logger.warning("No documents found for keyword scoring", extra={"tier": "keyword"})
        return []

    results = rank_by_keywords(rows, query, top_k, ctx.config.weights)
    logger.debug(
        f"Keyword scoring matched {len(results)} of {len(rows)} documents",
        extra={"tier": "keyword"},
    )
    return results


DEFAULT_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("vector", vector_search),
    ("full_text", full_text_search),
    ("keyword", keyword_search),
)


# =============================================================================
# Cascade
# =============================================================================


async def retrieve_with_outcome(
    query: str,
    scope: DocumentScope,
    top_k: int | None = None,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
    strategies: Sequence[tuple[str, Strategy]] = DEFAULT_STRATEGIES,
) -> RetrievalOutcome:
    """
    Run the fallback cascade and report which tier answered.

    Raises:
        RetrievalUnavailable: If every tier failed (none legitimately came back empty)
    """
    config = resolve_config(config)
    top_k = top_k or config.top_k

    outcome = RetrievalOutcome()
    if not query or not query.strip():
        return outcome

    ctx = RetrievalContext(config=config, client=client)

    for name, strategy in strategies:
        try:
            candidates = await strategy(query, scope, top_k, ctx)
        except (ProviderFailure, StoreFailure) as e:
            logger.warning(f"Retrieval tier failed, falling back: {e}", extra={"tier": name})
            outcome.failures.append(TierFailure(tier=name, error=e))
            continue

        if candidates:
            outcome.candidates = candidates
            outcome.tier = name
            log_with_context(
                logger,
                logging.INFO,
                f"Retrieved {len(candidates)} documents",
                tier=name,
                top_scores=[round(c.relevance_score, 3) for c in candidates[:3]],
            )
            return outcome

        logger.warning("Retrieval tier returned nothing, falling back", extra={"tier": name})

    if strategies and len(outcome.failures) == len(strategies):
        raise RetrievalUnavailable(outcome.failures)

    return outcome


async def retrieve(
    query: str,
    scope: DocumentScope,
    top_k: int | None = None,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> list[RetrievalCandidate]:
    """
    Retrieve the most relevant documents for a query.

    Args:
        query: Free-text query
        scope: Tenant scope
        top_k: Number of documents to return (config default when omitted)
        client: Supabase client
        config: Engine config (resolved once from settings when omitted)

    Returns:
        Ranked candidates from the first tier that found anything; [] if none did

    Raises:
        RetrievalUnavailable: If every tier failed with a provider/store error
    """
    outcome = await retrieve_with_outcome(query, scope, top_k, client=client, config=config)
    return outcome.candidates
