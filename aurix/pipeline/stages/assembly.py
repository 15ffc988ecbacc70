"""Document assembly stage.

Builds the final Markdown deterministically from the snapshot: the same
state always assembles to the same document.
"""

import logging
import re
from typing import List, Sequence

from .base import Stage, StateDelta
from ...errors import StageError
from ...models.document import DiagramSpec, DiagramType, DocumentSection, SessionState

logger = logging.getLogger(__name__)

TOC_MIN_SECTIONS = 4

# Section text that attracts a diagram of each archetype
SECTION_MATCH_KEYWORDS = {
    DiagramType.FLOWCHART: ("process", "flow", "step", "workflow", "procedure"),
    DiagramType.SEQUENCE: ("interaction", "request", "response", "sequence", "communication"),
    DiagramType.STATE: ("state", "transition", "status"),
}


def front_matter(state: SessionState) -> str:
    analysis = state.analysis
    title = ", ".join(analysis.topics) if analysis and analysis.topics else "Transcribed Document"
    title = title.replace('"', '\\"')
    return "\n".join([
        "---",
        f'title: "{title}"',
        f"date: {state.created_at.date().isoformat()}",
        f"sessionId: {state.session_id}",
        f"complexity: {analysis.complexity.value if analysis else 'unknown'}",
        f"contentType: {analysis.content_type.value if analysis else 'unknown'}",
        "---",
    ])


def anchor(title: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", title.strip().lower()))


def table_of_contents(sections: Sequence[DocumentSection]) -> str:
    lines = ["## Table of Contents", ""]
    for section in sections:
        indent = "  " * max(0, section.heading_level - 2)
        lines.append(f"{indent}- [{section.title}](#{anchor(section.title)})")
    return "\n".join(lines)


def format_section(section: DocumentSection) -> str:
    return f"{'#' * section.heading_level} {section.title}\n\n{section.content}"


def format_diagram(diagram: DiagramSpec) -> str:
    return "\n".join([
        f"### {diagram.title}",
        "",
        diagram.description,
        "",
        "```mermaid",
        diagram.diagram_code,
        "```",
    ])


def diagram_matches(section: DocumentSection, diagram: DiagramSpec, is_first: bool) -> bool:
    if diagram.type == DiagramType.CONCEPT_MAP:
        return is_first
    text = f"{section.title} {section.content}".lower()
    return any(keyword in text for keyword in SECTION_MATCH_KEYWORDS[diagram.type])


def footer(state: SessionState) -> str:
    lines = ["---", "", "*This document was automatically generated by Aurix.*"]
    if state.warnings:
        lines.extend(["", "### Generation Notes"])
        lines.extend(f"- {warning}" for warning in state.warnings)
    return "\n".join(lines)


def assemble_document(state: SessionState) -> str:
    """Front matter, optional TOC, sections with interleaved diagrams, footer.

    Raises:
        StageError: If there are no sections to assemble
    """
    if not state.sections:
        raise StageError(AssemblyStage.name, "no document sections available")

    sections = sorted(state.sections, key=lambda s: s.order)
    parts: List[str] = [front_matter(state)]
    if len(sections) >= TOC_MIN_SECTIONS:
        parts.append(table_of_contents(sections))

    placed = set()
    for position, section in enumerate(sections):
        parts.append(format_section(section))
        types_here = set()
        for index, diagram in enumerate(state.diagrams):
            if index in placed or diagram.type in types_here:
                continue
            if diagram_matches(section, diagram, position == 0):
                parts.append(format_diagram(diagram))
                placed.add(index)
                types_here.add(diagram.type)

    leftovers = [d for i, d in enumerate(state.diagrams) if i not in placed]
    if leftovers:
        parts.append("## Diagrams")
        parts.extend(format_diagram(d) for d in leftovers)

    parts.append(footer(state))
    return "\n\n".join(parts)


def fallback_document(state: SessionState) -> str:
    """Raw transcript plus whatever analysis is available."""
    parts = ["# Transcribed Document", "", f"*Generated on {state.created_at.date().isoformat()}*", ""]

    analysis = state.analysis
    if analysis:
        parts.extend(["## Summary", ""])
        parts.append(f"**Topics:** {', '.join(analysis.topics) or 'none detected'}")
        parts.append(f"**Complexity:** {analysis.complexity.value}")
        parts.append(f"**Type:** {analysis.content_type.value}")
        parts.append("")
        if analysis.key_points:
            parts.extend(["### Key Points", ""])
            parts.extend(f"- {point}" for point in analysis.key_points)
            parts.append("")

    parts.extend(["## Transcript", "", state.transcript])

    if state.diagrams:
        parts.extend(["", "## Diagrams", ""])
        for diagram in state.diagrams:
            parts.extend([format_diagram(diagram), ""])

    return "\n".join(parts).rstrip() + "\n"


class AssemblyStage(Stage):
    name = "assembly"

    async def run(self, state: SessionState) -> StateDelta:
        document = assemble_document(state)
        logger.info(f"Assembled document for {state.session_id}: {len(document)} chars")
        return {"final_document": document}

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        return {"final_document": fallback_document(state)}
