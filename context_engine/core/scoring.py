"""Heuristic relevance scoring for text-matched documents.

Two passes share the same match counting:
  - score_keyword_match: from-scratch keyword scoring (last-resort tier)
  - score_ranked_match: rescoring of a full-text result set, with a
    rank-decay penalty and a confidence floor
Weights come from ScoringWeights so they can be tuned without code changes.
"""

from dataclasses import dataclass
from typing import Any

from context_engine.core.config import ScoringWeights


@dataclass
class MatchCounts:
    """How many query words matched, overall and per field."""

    total: int = 0
    title: int = 0
    summary: int = 0
    body: int = 0


def query_words(query: str) -> list[str]:
    """Lowercased whitespace tokens longer than 2 characters."""
    return [w for w in query.lower().split() if len(w) > 2]


def _fields(document: dict[str, Any]) -> tuple[str, str, str]:
    return (
        (document.get("title") or "").lower(),
        (document.get("summary") or "").lower(),
        (document.get("body") or "").lower(),
    )


def count_matches(document: dict[str, Any], words: list[str]) -> MatchCounts:
    title, summary, body = _fields(document)
    combined = f"{title} {summary} {body}"

    counts = MatchCounts()
    for word in words:
        if word in combined:
            counts.total += 1
            if word in title:
                counts.title += 1
            if word in summary:
                counts.summary += 1
            if word in body:
                counts.body += 1
    return counts


def _weighted_score(
    document: dict[str, Any],
    query: str,
    words: list[str],
    counts: MatchCounts,
    weights: ScoringWeights,
) -> float:
    score = 0.0
    n = len(words)

    if n > 0:
        score += (counts.total / n) * weights.word_ratio
        if counts.title:
            score += min(weights.title, (counts.title / n) * weights.title)
        if counts.summary:
            score += min(weights.summary, (counts.summary / n) * weights.summary)
        if counts.body:
            score += min(weights.body, (counts.body / n) * weights.body)

    # Exact phrase bonus, title first
    phrase = query.lower()
    title, summary, body = _fields(document)
    if phrase in title:
        score += weights.phrase_title
    elif phrase in summary:
        score += weights.phrase_summary
    elif phrase in body:
        score += weights.phrase_body

    return score


def score_keyword_match(
    document: dict[str, Any],
    query: str,
    weights: ScoringWeights,
) -> float | None:
    """
    Score a document against a query from scratch.

    Returns:
        Score in [0, 1], or None when no query word matches at all
    """
    words = query_words(query)
    counts = count_matches(document, words)
    if counts.total == 0:
        return None

    return min(1.0, _weighted_score(document, query, words, counts, weights))


def score_ranked_match(
    document: dict[str, Any],
    query: str,
    rank_index: int,
    weights: ScoringWeights,
) -> float:
    """
    Score a full-text hit, decayed by its position in the result set.

    Every full-text hit matched the store's operator, so the score is
    floored at ``ranked_min_score``.
    """
    words = query_words(query)
    counts = count_matches(document, words)

    score = _weighted_score(document, query, words, counts, weights)
    score *= max(weights.rank_decay_floor, 1 - rank_index / weights.rank_decay_divisor)

    return min(1.0, max(weights.ranked_min_score, score))
