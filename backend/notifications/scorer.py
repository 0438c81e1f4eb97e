"""
Relevance scoring of events against subscription prompts.

The pipeline treats scoring as a capability: anything with a
`score(prompt, event)` method returning a MatchResult works. PromptScorer is
the default implementation: cosine similarity between precomputed
embeddings, falling back to keyword overlap when embeddings are missing or
the semantic score is too low.
"""

import math
from typing import Protocol

from config import settings
from models import Event, MatchResult, MatchType
from models.types import Embedding

# Prompt words this short ("a", "in", "of") are ignored for keyword matching
MIN_KEYWORD_LENGTH = 3


class ScorerError(Exception):
    """Scoring failed for a (prompt, event) pair."""


class Scorer(Protocol):
    def score(
        self, prompt: str, event: Event, prompt_embedding: Embedding | None = None
    ) -> MatchResult: ...


def cosine_similarity(a: Embedding, b: Embedding) -> float:
    """Cosine similarity of two vectors (0.0 if either has zero length)."""
    if len(a) != len(b):
        raise ScorerError(f"Embedding dimensions differ: {len(a)} != {len(b)}")

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def keyword_score(prompt: str, event: Event) -> float:
    """Fraction of prompt keywords found in the event title or description."""
    keywords = [word for word in prompt.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]
    if not keywords:
        return 0.0

    title = event.title.lower()
    description = event.description.lower()
    hits = sum(1 for word in keywords if word in title or word in description)
    return hits / len(keywords)


class PromptScorer:
    """Semantic-first scorer with a keyword fallback."""

    def __init__(
        self,
        similarity_threshold: float = settings.SIMILARITY_THRESHOLD,
        keyword_min_score: float = settings.KEYWORD_MIN_SCORE,
    ):
        self.similarity_threshold = similarity_threshold
        self.keyword_min_score = keyword_min_score

    def score(
        self, prompt: str, event: Event, prompt_embedding: Embedding | None = None
    ) -> MatchResult:
        if prompt_embedding and event.description_embedding:
            similarity = cosine_similarity(prompt_embedding, event.description_embedding)
            if similarity >= self.similarity_threshold:
                return MatchResult(
                    score=min(similarity, 1.0), match_type=MatchType.SEMANTIC
                )

        score = keyword_score(prompt, event)
        if score < self.keyword_min_score:
            score = 0.0
        return MatchResult(score=score, match_type=MatchType.LEXICAL)
