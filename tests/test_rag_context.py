"""Tests for RAG context assembly."""

import pytest

from context_engine.core.rag_context import (
    DEFAULT_INSTRUCTIONS,
    build_rag_context,
    build_rag_prompt,
    extract_sources,
)
from context_engine.core.retrieval import RetrievalCandidate


def _candidate(doc_id: str, score: float, body: str = "Body text.", summary: str | None = None):
    return RetrievalCandidate(
        document={
            "id": doc_id,
            "title": f"Doc {doc_id}",
            "slug": f"doc-{doc_id}",
            "summary": summary,
            "body": body,
        },
        relevance_score=score,
        tier="vector",
    )


def test_blocks_sorted_by_relevance_with_stable_ties():
    context = build_rag_context(
        [_candidate("a", 0.5), _candidate("b", 0.9), _candidate("c", 0.5)]
    )

    assert [a.id for a in context.articles] == ["b", "a", "c"]
    text = context.context_text
    assert text.index("## Doc b") < text.index("## Doc a") < text.index("## Doc c")


def test_block_layout():
    context = build_rag_context(
        [_candidate("a", 0.8, body="Refunds take 14 days.", summary="Short")]
    )

    assert context.context_text == (
        "## Doc a\n\nSummary: Short\n\nContent: Refunds take 14 days.\n\n---"
    )


def test_summary_line_omitted_when_missing():
    context = build_rag_context([_candidate("a", 0.8)])
    assert "Summary:" not in context.context_text


def test_empty_candidates():
    context = build_rag_context([])
    assert context.articles == []
    assert context.context_text == ""


@pytest.mark.parametrize("count", [1, 3, 10, 40])
@pytest.mark.parametrize("max_chars", [300, 1000, 8000])
def test_context_never_exceeds_budget(count, max_chars):
    candidates = [_candidate(str(i), 1 - i / 100, body="lorem ipsum " * 400) for i in range(count)]

    context = build_rag_context(candidates, max_chars=max_chars)

    assert len(context.context_text) <= max_chars


def test_last_block_truncated_with_ellipsis_then_stops():
    candidates = [
        _candidate("a", 0.9, body="x" * 500),
        _candidate("b", 0.8, body="y" * 5000, summary="s" * 600),
        _candidate("c", 0.7, body="z" * 10),
    ]

    context = build_rag_context(candidates, max_chars=1200)

    assert context.context_text.endswith("...")
    assert "## Doc c" not in context.context_text
    # Every candidate is still listed for citation
    assert [a.id for a in context.articles] == ["a", "b", "c"]


def test_tiny_remaining_space_drops_block():
    first = _candidate("a", 0.9, body="x" * 100, summary="s" * 150)
    first_only = build_rag_context([first], max_chars=10_000).context_text

    context = build_rag_context(
        [first, _candidate("b", 0.5, body="y" * 1000, summary="s" * 1000)],
        max_chars=len(first_only) + 65,
    )

    assert context.context_text == first_only


def test_prompt_wraps_context_and_question():
    context = build_rag_context([_candidate("a", 0.8)])
    prompt = build_rag_prompt("How do refunds work?", context)

    assert prompt.startswith(DEFAULT_INSTRUCTIONS)
    assert "## Knowledge Base Context\n\n## Doc a" in prompt
    assert "## User Question\n\nHow do refunds work?" in prompt


def test_prompt_custom_instructions():
    prompt = build_rag_prompt("q", build_rag_context([]), "Answer tersely.")
    assert prompt.startswith("Answer tersely.")


def test_extract_sources_lists_every_article():
    candidates = [_candidate("a", 0.9, body="x" * 5000), _candidate("b", 0.8)]
    context = build_rag_context(candidates, max_chars=500)

    sources = extract_sources(context)

    assert [s.article_id for s in sources] == ["a", "b"]
    assert sources[0].article_slug == "doc-a"
