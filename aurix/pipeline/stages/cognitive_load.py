"""Cognitive load scoring stage."""

import logging
from typing import Optional

from .base import Stage, StateDelta
from ..text import count_technical_terms, detect_concepts, split_sentences
from ...models.document import CognitiveMetrics, Complexity, SessionState

logger = logging.getLogger(__name__)

READING_WORDS_PER_MINUTE = 225
OPTIMAL_SENTENCE_WORDS = (15, 20)
MAX_SUBSCORE = 25
# Ten concept phrases per 100 words counts as maximally dense
CONCEPT_CEILING_PER_100_WORDS = 10

COMPLEXITY_SCORES = {
    Complexity.LOW: 5,
    Complexity.MEDIUM: 15,
    Complexity.HIGH: 25,
}


def compute_metrics(text: str) -> CognitiveMetrics:
    words = text.split()
    word_count = len(words)
    if word_count == 0:
        return CognitiveMetrics()

    sentence_count = max(1, len(split_sentences(text)))
    concepts_per_100 = len(detect_concepts(text)) / word_count * 100
    return CognitiveMetrics(
        word_count=word_count,
        sentence_count=sentence_count,
        avg_words_per_sentence=word_count / sentence_count,
        technical_term_count=count_technical_terms(words),
        conceptual_density=min(1.0, concepts_per_100 / CONCEPT_CEILING_PER_100_WORDS),
        est_reading_minutes=word_count / READING_WORDS_PER_MINUTE,
    )


def sentence_length_score(avg_words: float) -> float:
    """5 inside the optimal band, plus 2 per word of distance from it, capped at 25.

    Short sentences are scored by distance as well, not with a flat 10 for
    every average under 10 words, so the score is monotone on both sides.
    """
    low, high = OPTIMAL_SENTENCE_WORDS
    if avg_words <= 0:
        return 0.0
    distance = max(low - avg_words, avg_words - high, 0)
    return min(MAX_SUBSCORE, 5 + distance * 2)


def technical_density_score(metrics: CognitiveMetrics) -> float:
    if metrics.word_count == 0:
        return 0.0
    density = metrics.technical_term_count / metrics.word_count * 100
    return min(MAX_SUBSCORE, density * 2.5)


def conceptual_density_score(metrics: CognitiveMetrics) -> float:
    return min(MAX_SUBSCORE, max(0.0, metrics.conceptual_density) * MAX_SUBSCORE)


def cognitive_load_index(metrics: Optional[CognitiveMetrics], complexity: Optional[Complexity]) -> int:
    """Sum of four 0-25 sub-scores, clamped to [0, 100]."""
    metrics = metrics or CognitiveMetrics()
    score = (
        sentence_length_score(metrics.avg_words_per_sentence)
        + technical_density_score(metrics)
        + conceptual_density_score(metrics)
        + COMPLEXITY_SCORES.get(complexity, COMPLEXITY_SCORES[Complexity.MEDIUM])
    )
    return max(0, min(100, round(score)))


class CognitiveLoadStage(Stage):
    name = "cognitive_load"

    async def run(self, state: SessionState) -> StateDelta:
        metrics = compute_metrics(state.transcript)
        complexity = state.analysis.complexity if state.analysis else None
        index = cognitive_load_index(metrics, complexity)
        logger.info(f"Cognitive load index for {state.session_id}: {index}")
        return {"cognitive_metrics": metrics, "cognitive_load_index": index}

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        complexity = state.analysis.complexity if state.analysis else None
        return {"cognitive_metrics": CognitiveMetrics(),
                "cognitive_load_index": cognitive_load_index(None, complexity)}
