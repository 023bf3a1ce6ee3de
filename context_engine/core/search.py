"""Hybrid knowledge-base search for listing pages.

Unlike the retrieval cascade, this runs both the full-text and the vector
pass and merges them: a document found by both gets a weighted blend of
the two scores. Results are paginated.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from supabase import Client

from context_engine.core.config import EngineConfig, resolve_config
from context_engine.core.embeddings import embed_query
from context_engine.core.errors import (
    ProviderFailure,
    RetrievalUnavailable,
    StoreFailure,
    TierFailure,
)
from context_engine.core.logging import get_logger
from context_engine.core.retrieval import (
    DocumentScope,
    RetrievalCandidate,
    build_search_terms,
    rank_by_vector,
)
from context_engine.core.scoring import score_ranked_match
from context_engine.db import documents as documents_db

logger = get_logger(__name__)


@dataclass
class SearchResult:
    document: dict[str, Any]
    relevance_score: float
    match_type: str  # fulltext | vector | both


def _has_tags(document: dict[str, Any], tags: list[str] | None) -> bool:
    if not tags:
        return True
    return set(tags).issubset(document.get("tags") or [])


def merge_search_results(
    fulltext: list[SearchResult],
    vector: list[SearchResult],
    fulltext_weight: float,
    vector_weight: float,
) -> list[SearchResult]:
    """Merge by document id, blending scores for documents found by both passes."""
    merged: dict[str, SearchResult] = {}
    for result in fulltext:
        merged[str(result.document.get("id"))] = result

    for result in vector:
        key = str(result.document.get("id"))
        existing = merged.get(key)
        if existing:
            merged[key] = SearchResult(
                document=result.document,
                relevance_score=existing.relevance_score * fulltext_weight
                + result.relevance_score * vector_weight,
                match_type="both",
            )
        else:
            merged[key] = result

    return sorted(merged.values(), key=lambda r: r.relevance_score, reverse=True)


async def hybrid_search(
    query: str,
    scope: DocumentScope,
    limit: int = 50,
    offset: int = 0,
    tags: list[str] | None = None,
    *,
    client: Client | None = None,
    config: EngineConfig | None = None,
) -> list[SearchResult]:
    """
    Search the knowledge base with full-text and vector passes combined.

    Raises:
        RetrievalUnavailable: If both passes failed
    """
    config = resolve_config(config)
    if not query or not query.strip():
        return []

    failures: list[TierFailure] = []
    pool = limit * 2

    fulltext: list[SearchResult] = []
    terms = build_search_terms(query)
    if terms:
        try:
            rows = await asyncio.to_thread(
                documents_db.search_full_text, terms, scope.organization_id, pool, client, tags
            )
            fulltext = [
                SearchResult(
                    document=row,
                    relevance_score=score_ranked_match(row, query, index, config.weights),
                    match_type="fulltext",
                )
                for index, row in enumerate(rows)
            ]
        except StoreFailure as e:
            logger.warning(f"Full-text pass failed: {e}", extra={"tier": "full_text"})
            failures.append(TierFailure(tier="full_text", error=e))

    vector: list[SearchResult] = []
    try:
        embedding = await embed_query(query, client=client, config=config)
        if not embedding.ok:
            raise embedding.failure
        rows = await asyncio.to_thread(
            documents_db.list_vector_candidates, scope.organization_id, pool * 3, client
        )
        ranked: list[RetrievalCandidate] = rank_by_vector(
            [row for row in rows if _has_tags(row, tags)], embedding.vector, pool
        )
        vector = [
            SearchResult(document=c.document, relevance_score=c.relevance_score, match_type="vector")
            for c in ranked
        ]
    except (ProviderFailure, StoreFailure) as e:
        logger.warning(f"Vector pass failed: {e}", extra={"tier": "vector"})
        failures.append(TierFailure(tier="vector", error=e))

    if len(failures) == 2:
        raise RetrievalUnavailable(failures)

    merged = merge_search_results(
        fulltext,
        vector,
        config.weights.hybrid_fulltext_weight,
        config.weights.hybrid_vector_weight,
    )
    return merged[offset : offset + limit]
