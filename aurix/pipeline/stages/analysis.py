"""Content analysis stage."""

import json
import logging
import re
from typing import List

from .base import Stage, StateDelta
from ..text import count_technical_terms, split_sentences, top_keywords
from ...errors import StageError
from ...models.document import (
    Complexity,
    ContentAnalysis,
    ContentType,
    SessionState,
    coerce_enum,
)

logger = logging.getLogger(__name__)

FALLBACK_OUTLINE = ("Overview", "Key Points", "Full Transcript")

ANALYSIS_PROMPT = """Analyze the following transcript and provide a structured analysis.

Target Audience: {audience}

Transcript:
{transcript}

Please provide your analysis in the following JSON format:
{{
  "topics": ["topic1", "topic2", ...],
  "complexity": "low" | "medium" | "high",
  "contentType": "explanation" | "tutorial" | "discussion" | "brainstorming" | "other",
  "keyPoints": ["point1", "point2", ...],
  "suggestedSections": ["section1", "section2", ...]
}}

Focus on:
1. Identifying the main topics discussed
2. Assessing the complexity level for the target audience
3. Determining the type of content
4. Extracting 3-5 key points
5. Suggesting logical sections for a structured document"""

# Cue phrases per content type, checked in this order for tie-breaking
CONTENT_TYPE_CUES = [
    (ContentType.TUTORIAL, re.compile(
        r"\b(?:step \w+|how to|install|click|let's|you need to)\b|\b(?:first|next|finally),",
        re.IGNORECASE)),
    (ContentType.BRAINSTORMING, re.compile(
        r"\b(idea|ideas|what if|maybe we|we could|brainstorm\w*|alternatively)\b", re.IGNORECASE)),
    (ContentType.DISCUSSION, re.compile(
        r"\b(i think|in my opinion|agree|disagree|discuss\w*|debate|on the other hand)\b", re.IGNORECASE)),
    (ContentType.EXPLANATION, re.compile(
        r"\b(because|means|is called|works by|explain\w*|in other words|responds?|request)\b", re.IGNORECASE)),
]


def classify_content_type(transcript: str) -> ContentType:
    """Keyword heuristic used when the model gives no usable answer."""
    best_type, best_hits = ContentType.OTHER, 0
    for content_type, pattern in CONTENT_TYPE_CUES:
        hits = len(pattern.findall(transcript))
        if hits > best_hits:
            best_type, best_hits = content_type, hits

    if best_hits == 0 and count_technical_terms(transcript.split()) > 0:
        return ContentType.EXPLANATION
    return best_type


def extract_key_points(transcript: str, limit: int = 5) -> List[str]:
    """First sentence and every third one after it."""
    return split_sentences(transcript)[::3][:limit]


def fallback_analysis(transcript: str) -> ContentAnalysis:
    return ContentAnalysis(
        topics=tuple(top_keywords(transcript, 5)),
        complexity=Complexity.MEDIUM,
        content_type=classify_content_type(transcript),
        key_points=tuple(extract_key_points(transcript)),
        suggested_sections=FALLBACK_OUTLINE,
    )


def _string_list(value) -> tuple:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def parse_analysis(response: str) -> ContentAnalysis:
    """Parse the model's JSON reply.

    Raises:
        StageError: If the reply holds no JSON object
    """
    match = re.search(r"\{[\s\S]*\}", response or "")
    if not match:
        raise StageError(AnalysisStage.name, "model reply contains no JSON object")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise StageError(AnalysisStage.name, f"malformed JSON in model reply: {e}", e) from e
    if not isinstance(parsed, dict):
        raise StageError(AnalysisStage.name, "model reply JSON is not an object")

    return ContentAnalysis(
        topics=_string_list(parsed.get("topics")),
        complexity=coerce_enum(Complexity, parsed.get("complexity"), Complexity.MEDIUM),
        content_type=coerce_enum(ContentType, parsed.get("contentType"), ContentType.OTHER),
        key_points=_string_list(parsed.get("keyPoints")),
        suggested_sections=_string_list(parsed.get("suggestedSections")),
    )


class AnalysisStage(Stage):
    name = "analysis"

    async def run(self, state: SessionState) -> StateDelta:
        prompt = ANALYSIS_PROMPT.format(audience=state.config.target_audience.value,
                                        transcript=state.transcript)
        response = await self.ask(state, prompt, temperature=0.3, max_tokens=1500)
        analysis = parse_analysis(response)
        logger.info(f"Analysis for {state.session_id}: {len(analysis.topics)} topics, "
                    f"complexity {analysis.complexity.value}, type {analysis.content_type.value}")
        return {"analysis": analysis}

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        return {"analysis": fallback_analysis(state.transcript)}
