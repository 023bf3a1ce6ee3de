"""Relation discovery: link a document to related documents, tasks, phases and dashboards.

Documents are related by cosine similarity of their stored embeddings.
Tasks, phases and dashboards carry no embeddings, so they are matched on
keywords extracted from the document's title and summary, and each hit
keeps the keywords it matched on so the link can be explained.

Relation discovery is advisory: a store failure degrades to "no links"
and is logged, it never fails the caller.
"""

import asyncio
import json
import re
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from supabase import Client

from context_engine.core.errors import ParseFailure, StoreFailure
from context_engine.core.logging import get_logger
from context_engine.core.similarity import cosine_similarities, parse_vector
from context_engine.db import documents as documents_db
from context_engine.db import related as related_db

logger = get_logger(__name__)

T = TypeVar("T")

MAX_KEYWORDS = 10
MAX_SHOWN_KEYWORDS = 3

STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does",
        "did", "will", "would", "should", "could", "may", "might", "must", "can", "this",
        "that", "these", "those",
    }
)

_NON_WORD = re.compile(r"[^\w\s]")


# =============================================================================
# Models
# =============================================================================


class RelatedDocument(BaseModel):
    id: str
    title: str
    slug: str | None = None
    similarity_score: float


class RelatedTask(BaseModel):
    id: str
    title: str
    project_id: str
    project_name: str | None = None
    matching_keywords: list[str] = Field(default_factory=list)


class RelatedPhase(BaseModel):
    id: str
    project_id: str
    phase_number: int
    phase_name: str | None = None
    project_name: str | None = None
    matching_keywords: list[str] = Field(default_factory=list)


class RelatedDashboard(BaseModel):
    id: str
    name: str
    matching_keywords: list[str] = Field(default_factory=list)


class RelatedContent(BaseModel):
    """Everything linked to one document."""

    articles: list[RelatedDocument] = Field(default_factory=list)
    tasks: list[RelatedTask] = Field(default_factory=list)
    dashboards: list[RelatedDashboard] = Field(default_factory=list)
    phases: list[RelatedPhase] = Field(default_factory=list)


# =============================================================================
# Keyword matching
# =============================================================================


def extract_keywords(text: str, max_keywords: int = MAX_KEYWORDS) -> list[str]:
    """
    Pull distinctive keywords from text.

    Lowercases, strips punctuation, drops stopwords and tokens of 3
    characters or fewer, and keeps the first ``max_keywords`` unique ones
    in order of appearance.
    """
    words = _NON_WORD.sub(" ", text.lower()).split()
    unique: list[str] = []
    for word in words:
        if len(word) > 3 and word not in STOPWORDS and word not in unique:
            unique.append(word)
            if len(unique) == max_keywords:
                break
    return unique


def document_keywords(document: dict[str, Any]) -> list[str]:
    return extract_keywords(f"{document.get('title') or ''} {document.get('summary') or ''}")


def rank_by_keyword_overlap(
    items: list[T],
    keywords: list[str],
    text_of: Callable[[T], str],
    limit: int,
) -> list[tuple[T, list[str]]]:
    """Items that mention at least one keyword, most matches first (stable)."""
    matched: list[tuple[T, list[str]]] = []
    for item in items:
        text = text_of(item).lower()
        hits = [kw for kw in keywords if kw in text]
        if hits:
            matched.append((item, hits))

    matched.sort(key=lambda pair: len(pair[1]), reverse=True)
    return matched[:limit]


# =============================================================================
# Documents (embedding similarity)
# =============================================================================


def _scope_compatible(source_org: str | None, candidate_org: str | None) -> bool:
    # Global documents only link to global documents
    if source_org is None:
        return candidate_org is None
    return candidate_org in (source_org, None)


async def find_related_documents(
    document_id: str,
    limit: int = 5,
    *,
    client: Client | None = None,
    source: dict[str, Any] | None = None,
) -> list[RelatedDocument]:
    """
    Find documents similar to a source document by stored embedding.

    Args:
        document_id: Source document id
        limit: Maximum related documents
        client: Supabase client
        source: Already-loaded source row (skips a lookup)

    Returns:
        Related documents, most similar first
    """
    try:
        if source is None:
            source = await asyncio.to_thread(documents_db.get_document, document_id, client)
        if not source:
            logger.warning("Source document not found", extra={"document_id": document_id})
            return []

        if not source.get("vector"):
            logger.warning(
                "Source document has no embedding, cannot find related documents",
                extra={"document_id": document_id},
            )
            return []

        source_vector = parse_vector(source["vector"])
        rows = await asyncio.to_thread(
            documents_db.list_linkable_documents,
            document_id,
            source.get("organization_id"),
            limit * 3,
            client,
        )
    except ParseFailure as e:
        logger.error(f"Source document vector is invalid: {e}", extra={"document_id": document_id})
        return []
    except StoreFailure as e:
        logger.error(f"Error finding related documents: {e}", extra={"document_id": document_id})
        return []

    source_org = source.get("organization_id")
    candidates: list[dict[str, Any]] = []
    vectors: list[list[float]] = []
    for row in rows:
        if not _scope_compatible(source_org, row.get("organization_id")):
            continue
        try:
            vectors.append(parse_vector(row.get("vector")))
        except ParseFailure:
            continue
        candidates.append(row)

    scored = list(zip(cosine_similarities(source_vector, vectors), candidates))
    scored.sort(key=lambda pair: pair[0], reverse=True)

    return [
        RelatedDocument(
            id=str(row["id"]),
            title=row.get("title") or "Untitled",
            slug=row.get("slug"),
            similarity_score=similarity,
        )
        for similarity, row in scored[:limit]
    ]


# =============================================================================
# Cross-domain (keyword fallback)
# =============================================================================


async def _organization_projects(
    organization_id: str, client: Client | None
) -> dict[str, str | None]:
    projects = await asyncio.to_thread(
        related_db.list_organization_projects, organization_id, client
    )
    return {str(p["id"]): p.get("name") for p in projects}


async def find_related_tasks(
    document: dict[str, Any],
    organization_id: str,
    limit: int = 5,
    *,
    client: Client | None = None,
) -> list[RelatedTask]:
    """Tasks in the organization's projects that mention the document's keywords."""
    keywords = document_keywords(document)
    if not keywords:
        return []

    try:
        project_names = await _organization_projects(organization_id, client)
        if not project_names:
            return []
        tasks = await asyncio.to_thread(
            related_db.list_project_tasks, list(project_names), limit * 2, client
        )
    except StoreFailure as e:
        logger.error(f"Error finding related tasks: {e}")
        return []

    ranked = rank_by_keyword_overlap(
        tasks,
        keywords,
        lambda t: f"{t.get('title') or ''} {t.get('description') or ''}",
        limit,
    )
    return [
        RelatedTask(
            id=str(task["id"]),
            title=task.get("title") or "",
            project_id=str(task["project_id"]),
            project_name=project_names.get(str(task["project_id"])),
            matching_keywords=hits[:MAX_SHOWN_KEYWORDS],
        )
        for task, hits in ranked
    ]


async def find_related_phases(
    document: dict[str, Any],
    organization_id: str,
    limit: int = 5,
    *,
    client: Client | None = None,
) -> list[RelatedPhase]:
    """Phases whose JSON data mentions the document's keywords."""
    keywords = document_keywords(document)
    if not keywords:
        return []

    try:
        project_names = await _organization_projects(organization_id, client)
        if not project_names:
            return []
        phases = await asyncio.to_thread(
            related_db.list_project_phases, list(project_names), limit * 2, client
        )
    except StoreFailure as e:
        logger.error(f"Error finding related phases: {e}")
        return []

    ranked = rank_by_keyword_overlap(
        phases,
        keywords,
        lambda p: json.dumps(p.get("data") or {}, default=str),
        limit,
    )
    return [
        RelatedPhase(
            id=str(phase["id"]),
            project_id=str(phase["project_id"]),
            phase_number=phase.get("phase_number") or 0,
            phase_name=phase.get("phase_name") or None,
            project_name=project_names.get(str(phase["project_id"])),
            matching_keywords=hits[:MAX_SHOWN_KEYWORDS],
        )
        for phase, hits in ranked
    ]


async def find_related_dashboards(
    document: dict[str, Any],
    organization_id: str,
    limit: int = 3,
    *,
    client: Client | None = None,
) -> list[RelatedDashboard]:
    """Organization dashboards whose name or description mentions the document's keywords."""
    keywords = document_keywords(document)
    if not keywords:
        return []

    try:
        dashboards = await asyncio.to_thread(
            related_db.search_dashboards, organization_id, keywords, limit * 2, client
        )
    except StoreFailure as e:
        logger.error(f"Error finding related dashboards: {e}")
        return []

    ranked = rank_by_keyword_overlap(
        dashboards,
        keywords,
        lambda d: f"{d.get('name') or ''} {d.get('description') or ''}",
        limit,
    )
    return [
        RelatedDashboard(
            id=str(dashboard["id"]),
            name=dashboard.get("name") or "",
            matching_keywords=hits[:MAX_SHOWN_KEYWORDS],
        )
        for dashboard, hits in ranked
    ]


# =============================================================================
# Aggregate
# =============================================================================


async def find_all_related_content(
    document_id: str,
    organization_id: str | None,
    *,
    client: Client | None = None,
) -> RelatedContent:
    """
    Collect every kind of related content for a document.

    Cross-domain links need an organization; without one only related
    documents are returned.
    """
    try:
        document = await asyncio.to_thread(documents_db.get_document, document_id, client)
    except StoreFailure as e:
        logger.error(f"Error fetching document: {e}", extra={"document_id": document_id})
        return RelatedContent()

    if not document:
        return RelatedContent()

    if not organization_id:
        articles = await find_related_documents(
            document_id, 5, client=client, source=document
        )
        return RelatedContent(articles=articles)

    articles, tasks, dashboards, phases = await asyncio.gather(
        find_related_documents(document_id, 5, client=client, source=document),
        find_related_tasks(document, organization_id, 5, client=client),
        find_related_dashboards(document, organization_id, 3, client=client),
        find_related_phases(document, organization_id, 5, client=client),
    )
    return RelatedContent(articles=articles, tasks=tasks, dashboards=dashboards, phases=phases)


async def update_document_links(
    document_id: str,
    related: RelatedContent,
    *,
    client: Client | None = None,
) -> bool:
    """
    Store related-content ids in the document's metadata.

    Returns:
        True if the metadata was written
    """
    try:
        document = await asyncio.to_thread(documents_db.get_document, document_id, client)
        if not document:
            logger.error("Document not found for link update", extra={"document_id": document_id})
            return False

        metadata = {
            **(document.get("metadata") or {}),
            "related_articles": [a.id for a in related.articles],
            "related_tasks": [t.id for t in related.tasks],
            "related_dashboards": [d.id for d in related.dashboards],
            "related_phases": [p.id for p in related.phases],
        }
        await asyncio.to_thread(
            documents_db.update_document_metadata, document_id, metadata, client
        )
    except StoreFailure as e:
        logger.error(f"Error updating document links: {e}", extra={"document_id": document_id})
        return False

    return True
