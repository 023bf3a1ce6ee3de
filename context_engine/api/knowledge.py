"""Knowledge base endpoints: retrieval, context assembly, relations and embeddings."""

import asyncio

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel, Field

from context_engine.core.config import resolve_config
from context_engine.core.embeddings import generate_and_store_embedding
from context_engine.core.errors import RetrievalUnavailable, StoreFailure
from context_engine.core.logging import get_logger
from context_engine.core.rag_context import (
    RAGArticle,
    RAGContext,
    SourceCitation,
    build_rag_context,
    build_rag_prompt,
    extract_sources,
)
from context_engine.core.relations import (
    RelatedContent,
    find_all_related_content,
    update_document_links,
)
from context_engine.core.retrieval import DocumentScope, retrieve_with_outcome
from context_engine.core.search import hybrid_search
from context_engine.db.documents import get_document

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Request / Response Models
# ============================================================================


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Free-text question or search")
    organization_id: str | None = Field(None, description="Tenant id; omit for global only")
    top_k: int | None = Field(None, ge=1, le=50)
    max_chars: int | None = Field(None, ge=200, le=100_000)


class SearchResponse(BaseModel):
    articles: list[RAGArticle]
    context_text: str
    sources: list[SourceCitation]
    tier: str | None = None


class AskContextRequest(SearchRequest):
    instructions: str | None = Field(None, description="Override the default system instructions")


class AskContextResponse(SearchResponse):
    prompt: str


class HybridSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    organization_id: str | None = None
    tags: list[str] | None = None
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)


class HybridSearchHit(BaseModel):
    id: str
    title: str
    slug: str | None = None
    summary: str | None = None
    relevance_score: float
    match_type: str


class HybridSearchResponse(BaseModel):
    results: list[HybridSearchHit]
    total: int


class LinkUpdateResponse(BaseModel):
    document_id: str
    related: RelatedContent
    stored: bool


class EmbeddingResponse(BaseModel):
    document_id: str
    stored: bool


# ============================================================================
# Retrieval
# ============================================================================


async def _assemble(request: SearchRequest) -> tuple[RAGContext, str | None]:
    config = resolve_config()
    scope = DocumentScope(organization_id=request.organization_id)

    outcome = await retrieve_with_outcome(request.query, scope, request.top_k, config=config)
    context = build_rag_context(outcome.candidates, request.max_chars or config.max_context_chars)
    return context, outcome.tier


def _to_response(context: RAGContext, tier: str | None) -> SearchResponse:
    return SearchResponse(
        articles=context.articles,
        context_text=context.context_text,
        sources=extract_sources(context),
        tier=tier,
    )


@router.post("/search", response_model=SearchResponse)
async def search_knowledge_base(request: SearchRequest) -> SearchResponse:
    """
    Retrieve the most relevant documents and pack them into a context block.

    Raises:
        HTTPException 503: If every retrieval tier is unavailable
        HTTPException 500: On unexpected failure
    """
    try:
        context, tier = await _assemble(request)
    except RetrievalUnavailable as e:
        logger.error(f"Knowledge base search unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Knowledge base search failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search failed: {e}") from e

    return _to_response(context, tier)


@router.post("/ask-context", response_model=AskContextResponse)
async def build_ask_context(request: AskContextRequest) -> AskContextResponse:
    """
    Build the full question-answering prompt for an external LLM caller.

    Raises:
        HTTPException 503: If every retrieval tier is unavailable
        HTTPException 500: On unexpected failure
    """
    try:
        context, tier = await _assemble(request)
    except RetrievalUnavailable as e:
        logger.error(f"Knowledge base search unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Ask-context failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Ask-context failed: {e}") from e

    return AskContextResponse(
        **_to_response(context, tier).model_dump(),
        prompt=build_rag_prompt(request.query, context, request.instructions),
    )


@router.post("/hybrid-search", response_model=HybridSearchResponse)
async def hybrid_search_knowledge_base(request: HybridSearchRequest) -> HybridSearchResponse:
    """
    Paginated listing search blending full-text and vector matches.

    Raises:
        HTTPException 503: If both passes are unavailable
        HTTPException 500: On unexpected failure
    """
    try:
        results = await hybrid_search(
            request.query,
            DocumentScope(organization_id=request.organization_id),
            limit=request.limit,
            offset=request.offset,
            tags=request.tags,
        )
    except RetrievalUnavailable as e:
        logger.error(f"Hybrid search unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Hybrid search failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search failed: {e}") from e

    hits = [
        HybridSearchHit(
            id=str(r.document.get("id", "")),
            title=r.document.get("title") or "Untitled",
            slug=r.document.get("slug"),
            summary=r.document.get("summary"),
            relevance_score=r.relevance_score,
            match_type=r.match_type,
        )
        for r in results
    ]
    return HybridSearchResponse(results=hits, total=len(hits))


# ============================================================================
# Relations
# ============================================================================


@router.get("/documents/{document_id}/related", response_model=RelatedContent)
async def get_related_content(
    document_id: str = Path(..., description="Document id"),
    organization_id: str | None = Query(None, description="Organization for cross-domain links"),
) -> RelatedContent:
    """Related documents, and tasks/phases/dashboards when an organization is given."""
    try:
        return await find_all_related_content(document_id, organization_id)
    except Exception as e:
        logger.error(
            f"Related content lookup failed: {e}",
            exc_info=True,
            extra={"document_id": document_id},
        )
        raise HTTPException(status_code=500, detail=f"Related content lookup failed: {e}") from e


@router.post("/documents/{document_id}/links", response_model=LinkUpdateResponse)
async def refresh_document_links(
    document_id: str = Path(..., description="Document id"),
    organization_id: str | None = Query(None, description="Organization for cross-domain links"),
) -> LinkUpdateResponse:
    """Discover related content and store the link ids in the document's metadata."""
    try:
        related = await find_all_related_content(document_id, organization_id)
        stored = await update_document_links(document_id, related)
    except Exception as e:
        logger.error(
            f"Link refresh failed: {e}", exc_info=True, extra={"document_id": document_id}
        )
        raise HTTPException(status_code=500, detail=f"Link refresh failed: {e}") from e

    return LinkUpdateResponse(document_id=document_id, related=related, stored=stored)


# ============================================================================
# Embeddings
# ============================================================================


@router.post("/documents/{document_id}/embedding", response_model=EmbeddingResponse)
async def regenerate_embedding(
    document_id: str = Path(..., description="Document id"),
) -> EmbeddingResponse:
    """
    Regenerate and store a document's embedding.

    Raises:
        HTTPException 404: If the document does not exist
        HTTPException 500: If the store read or write fails
    """
    try:
        document = await asyncio.to_thread(get_document, document_id)
        if not document:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")

        stored = await generate_and_store_embedding(document_id, document)
    except HTTPException:
        raise
    except StoreFailure as e:
        logger.error(f"Embedding refresh failed: {e}", extra={"document_id": document_id})
        raise HTTPException(status_code=500, detail=str(e)) from e

    return EmbeddingResponse(document_id=document_id, stored=stored)
