"""Section generation stage."""

import logging
import re
from typing import List, Sequence

from .analysis import FALLBACK_OUTLINE, fallback_analysis
from .base import Stage, StateDelta
from ..text import keywords, split_sentences, tokenize, truncate_words
from ...errors import ServiceUnavailable, StageError
from ...models.document import ContentAnalysis, DocumentSection, SessionState

logger = logging.getLogger(__name__)

OVERVIEW_TITLE, KEY_POINTS_TITLE, FULL_TRANSCRIPT_TITLE = FALLBACK_OUTLINE
SECTION_HEADING_LEVEL = 2
MAX_EXCERPT_SENTENCES = 5

SECTION_PROMPT = """Generate content for a section titled "{title}" in a {style} document.

Target audience: {audience}
Maximum length: {max_words} words

Context from the transcript:
{excerpt}

Key points to potentially cover:
{key_points}

Write clear, structured content in Markdown format. Include:
- Relevant explanations
- Examples if appropriate
- Bullet points or numbered lists where helpful
- Code blocks if technical content is discussed"""


def section_titles(analysis: ContentAnalysis) -> List[str]:
    if analysis.suggested_sections:
        return list(analysis.suggested_sections)
    if analysis.topics:
        return [f"Understanding {topic}" for topic in analysis.topics[:3]]
    return list(FALLBACK_OUTLINE)


def extract_relevant_sentences(sentences: Sequence[str], title: str,
                               key_points: Sequence[str]) -> List[str]:
    """Sentences sharing a keyword with ``title`` or opening like a key point."""
    title_words = set(keywords(title))
    prefixes = [point[:20] for point in key_points if point]
    relevant = []
    for sentence in sentences:
        if title_words.intersection(tokenize(sentence)) or any(p in sentence for p in prefixes):
            relevant.append(sentence)
        if len(relevant) >= MAX_EXCERPT_SENTENCES:
            break
    return relevant


def clean_markdown(content: str) -> str:
    content = content.strip()
    content = re.sub(r"```\s*```", "", content)
    content = re.sub(r"^#+\s*$", "", content, flags=re.MULTILINE)
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


def numbered_key_points(key_points: Sequence[str]) -> str:
    return "\n\n".join(f"{i}. {point}" for i, point in enumerate(key_points, 1))


def fallback_content(title: str, excerpt: Sequence[str], analysis: ContentAnalysis) -> str:
    """Deterministic section body built from the transcript."""
    if title == KEY_POINTS_TITLE and analysis.key_points:
        return numbered_key_points(analysis.key_points)
    if title == OVERVIEW_TITLE:
        topics = ", ".join(analysis.topics) or "Various topics"
        body = ("This document presents the key points from the recorded session.\n\n"
                f"**Topics covered:** {topics}")
        if excerpt:
            body += "\n\n" + " ".join(excerpt)
        return body
    if excerpt:
        return " ".join(excerpt)
    return "No part of the transcript matched this section."


class SectionStage(Stage):
    name = "sections"

    async def run(self, state: SessionState) -> StateDelta:
        analysis = state.analysis or fallback_analysis(state.transcript)
        sentences = split_sentences(state.transcript)
        titles = section_titles(analysis)
        max_words = state.config.max_section_words

        sections = []
        warnings = []
        for order, title in enumerate(titles):
            if title == FULL_TRANSCRIPT_TITLE:
                content = state.transcript
            else:
                assigned_points = analysis.key_points[order::len(titles)]
                excerpt = extract_relevant_sentences(sentences, title, analysis.key_points)
                try:
                    content = await self._generate(state, title, excerpt, assigned_points)
                except (ServiceUnavailable, StageError) as e:
                    logger.warning(f"Section '{title}' fell back to transcript excerpt: {e}")
                    warnings.append(f"Section '{title}' used transcript excerpt: {e}")
                    content = fallback_content(title, excerpt, analysis)
                content = truncate_words(content, max_words)

            sections.append(DocumentSection(title=title, content=content,
                                            heading_level=SECTION_HEADING_LEVEL, order=order))

        return {"sections": sections, "warnings": warnings}

    async def _generate(self, state: SessionState, title: str,
                        excerpt: Sequence[str], key_points: Sequence[str]) -> str:
        prompt = SECTION_PROMPT.format(
            title=title,
            style=state.config.document_style.value,
            audience=state.config.target_audience.value,
            max_words=state.config.max_section_words,
            excerpt=" ".join(excerpt) or "(no matching transcript sentences)",
            key_points="\n".join(key_points) or "(none)",
        )
        content = clean_markdown(await self.ask(state, prompt, temperature=0.5, max_tokens=2000))
        if not content:
            raise StageError(self.name, f"empty reply for section '{title}'")
        return content

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        analysis = state.analysis or fallback_analysis(state.transcript)
        sentences = split_sentences(state.transcript)
        sections = []
        for order, title in enumerate(section_titles(analysis)):
            if title == FULL_TRANSCRIPT_TITLE:
                content = state.transcript
            else:
                excerpt = extract_relevant_sentences(sentences, title, analysis.key_points)
                content = truncate_words(fallback_content(title, excerpt, analysis),
                                         state.config.max_section_words)
            sections.append(DocumentSection(title=title, content=content,
                                            heading_level=SECTION_HEADING_LEVEL, order=order))
        return {"sections": sections}
