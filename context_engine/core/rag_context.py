"""RAG context assembly: pack ranked documents into a bounded prompt block."""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from context_engine.core.retrieval import RetrievalCandidate

DEFAULT_MAX_CONTEXT_CHARS = 8_000

# Reserved from the content budget so heading/summary/separator still fit
CONTENT_SAFETY_MARGIN = 200
# Room left for the ellipsis when the last block is cut
TRUNCATION_MARGIN = 50
# A cut-down block shorter than this is not worth including
MIN_TRUNCATED_SPACE = 100

BLOCK_SEPARATOR = "\n\n"

DEFAULT_INSTRUCTIONS = """You are a helpful assistant that answers questions based solely on the provided knowledge base articles.
- Only use information from the provided context
- If the context doesn't contain enough information to answer the question, say so
- Cite specific articles when referencing information
- Be concise but thorough
- Format your response in clear, readable markdown"""


class RAGArticle(BaseModel):
    """Snapshot of a retrieved document, kept for citation."""

    id: str
    title: str
    slug: str | None = None
    summary: str | None = None
    body: str = ""
    relevance_score: float
    tier: str = ""


class RAGContext(BaseModel):
    """Retrieved articles plus the packed context text."""

    articles: list[RAGArticle] = Field(default_factory=list)
    context_text: str = ""


class SourceCitation(BaseModel):
    article_id: str
    article_title: str
    article_slug: str | None = None
    relevance_score: float


def _render_block(article: RAGArticle, content_budget: int) -> str:
    parts = [f"## {article.title}"]
    if article.summary:
        parts.append(f"Summary: {article.summary}")
    parts.append(f"Content: {article.body[: max(0, content_budget)]}")
    parts.append("---")
    return BLOCK_SEPARATOR.join(parts)


def _to_article(candidate: RetrievalCandidate) -> RAGArticle:
    doc = candidate.document
    return RAGArticle(
        id=str(doc.get("id", "")),
        title=doc.get("title") or "Untitled",
        slug=doc.get("slug"),
        summary=doc.get("summary"),
        body=doc.get("body") or "",
        relevance_score=candidate.relevance_score,
        tier=candidate.tier,
    )


def build_rag_context(
    candidates: Sequence[RetrievalCandidate],
    max_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> RAGContext:
    """
    Pack ranked candidates into a context block of at most ``max_chars``.

    Candidates are sorted by relevance (stable, so ties keep input order).
    Blocks are added whole while they fit; the first block that does not
    fit is cut to the remaining space with an ellipsis and packing stops.
    ``articles`` always lists every candidate, shown or not, so callers
    can still cite them.

    Args:
        candidates: Retrieval output
        max_chars: Character budget for ``context_text``

    Returns:
        RAGContext
    """
    articles = sorted(
        (_to_article(c) for c in candidates),
        key=lambda a: a.relevance_score,
        reverse=True,
    )

    blocks: list[str] = []
    used = 0

    for article in articles:
        if used >= max_chars:
            break

        # Separator joining this block to the previous one counts against the budget
        joiner = len(BLOCK_SEPARATOR) if blocks else 0
        block = _render_block(article, max_chars - used - CONTENT_SAFETY_MARGIN)

        if used + joiner + len(block) <= max_chars:
            blocks.append(block)
            used += joiner + len(block)
            continue

        remaining = max_chars - used - joiner
        if remaining > MIN_TRUNCATED_SPACE:
            blocks.append(block[: remaining - TRUNCATION_MARGIN] + "...")
        break

    return RAGContext(articles=articles, context_text=BLOCK_SEPARATOR.join(blocks))


def build_rag_prompt(
    user_query: str,
    context: RAGContext,
    system_instructions: str | None = None,
) -> str:
    """Wrap the packed context and the user's question into a Q&A prompt."""
    instructions = system_instructions or DEFAULT_INSTRUCTIONS
    return (
        f"{instructions}\n\n"
        f"## Knowledge Base Context\n\n{context.context_text}\n\n"
        f"## User Question\n\n{user_query}\n\n"
        "## Your Response\n\n"
        "Please answer the user's question using only the information provided in the "
        "knowledge base context above. If the context doesn't contain enough information, "
        "please say so."
    )


def extract_sources(context: RAGContext) -> list[SourceCitation]:
    """Citations for every retrieved article, including ones cut from the text."""
    return [
        SourceCitation(
            article_id=a.id,
            article_title=a.title,
            article_slug=a.slug,
            relevance_score=a.relevance_score,
        )
        for a in context.articles
    ]
