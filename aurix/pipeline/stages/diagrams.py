"""Diagram detection and generation stage."""

import logging
import re
from typing import List, NamedTuple, Tuple

from .base import Stage, StateDelta
from ..text import split_sentences
from ...errors import DiagramValidationError, ServiceUnavailable
from ...models.document import DiagramSpec, DiagramType, SessionState

logger = logging.getLogger(__name__)

MAX_DIAGRAMS = 3
CONCEPT_MAP_MIN_TOPICS = 4
MAX_CONTEXT_SENTENCES = 3

DIAGRAM_CUES = {
    DiagramType.FLOWCHART: re.compile(
        r"\b(step|steps|process|processes|flow|flows|workflow|workflows|procedure|procedures|pipeline|pipelines)\b",
        re.IGNORECASE),
    DiagramType.SEQUENCE: re.compile(
        r"\b(request|requests|response|responses|responds?|send|sends|receive|receives|"
        r"interact\w*|communicat\w*)\b", re.IGNORECASE),
    DiagramType.STATE: re.compile(
        r"\b(state|states|status|transition\w*|mode|modes|condition|conditions)\b", re.IGNORECASE),
}

DIAGRAM_KEYWORDS = {
    DiagramType.FLOWCHART: ("process", "flow", "steps", "procedure", "workflow"),
    DiagramType.SEQUENCE: ("interaction", "communication", "sequence", "order"),
    DiagramType.STATE: ("state", "transition", "status", "condition"),
}

# Markup must start with one of these
MARKUP_KEYWORDS = {
    DiagramType.FLOWCHART: ("flowchart", "graph"),
    DiagramType.SEQUENCE: ("sequenceDiagram",),
    DiagramType.STATE: ("stateDiagram",),
    DiagramType.CONCEPT_MAP: ("mindmap",),
}

DIAGRAM_TITLES = {
    DiagramType.FLOWCHART: "Process Flow",
    DiagramType.SEQUENCE: "Interaction Sequence",
    DiagramType.STATE: "State Transitions",
    DiagramType.CONCEPT_MAP: "Concept Map",
}

SYNTAX_EXAMPLES = {
    DiagramType.FLOWCHART: """flowchart TD
    A[Start] --> B{Decision}
    B -->|Yes| C[Action 1]
    B -->|No| D[Action 2]
    C --> E[End]
    D --> E""",
    DiagramType.SEQUENCE: """sequenceDiagram
    participant A as User
    participant B as System
    A->>B: Request
    B-->>A: Response""",
    DiagramType.STATE: """stateDiagram-v2
    [*] --> State1
    State1 --> State2
    State2 --> [*]""",
    DiagramType.CONCEPT_MAP: """mindmap
  root((Main Topic))
    Topic1
      Subtopic1
    Topic2""",
}

DIAGRAM_PROMPT = """Generate a Mermaid {kind} diagram based on the following context:

Context: {context}
Keywords: {keywords}

Example {kind} diagram syntax:
```mermaid
{example}
```

Generate a complete, valid Mermaid diagram that accurately represents the content.
The diagram should be:
1. Syntactically correct Mermaid code
2. Meaningful and related to the context
3. Not overly complex (5-10 nodes/elements maximum)
4. Well-labeled with clear, concise text

Return ONLY the Mermaid code block, nothing else."""


class DiagramCandidate(NamedTuple):
    type: DiagramType
    context: str
    keywords: Tuple[str, ...]


def detect_candidates(state: SessionState) -> List[DiagramCandidate]:
    """Diagram opportunities in archetype order, capped at ``MAX_DIAGRAMS``."""
    sentences = split_sentences(state.transcript)
    candidates = []
    for diagram_type, pattern in DIAGRAM_CUES.items():
        matching = [s for s in sentences if pattern.search(s)]
        if matching:
            candidates.append(DiagramCandidate(
                type=diagram_type,
                context=" ".join(matching[:MAX_CONTEXT_SENTENCES]),
                keywords=DIAGRAM_KEYWORDS[diagram_type],
            ))

    topics = state.analysis.topics if state.analysis else ()
    if len(topics) >= CONCEPT_MAP_MIN_TOPICS:
        candidates.append(DiagramCandidate(
            type=DiagramType.CONCEPT_MAP,
            context=f"Topics: {', '.join(topics)}",
            keywords=tuple(topics),
        ))
    return candidates[:MAX_DIAGRAMS]


def extract_diagram_code(response: str) -> str:
    """Take the fenced block if there is one, else the whole reply."""
    match = re.search(r"```(?:mermaid)?\s*([\s\S]*?)```", response or "")
    if match:
        return match.group(1).strip()
    return (response or "").strip()


def validate_diagram(diagram_type: DiagramType, code: str) -> str:
    """Return ``code`` if it starts with the archetype's markup keyword.

    Raises:
        DiagramValidationError: Otherwise
    """
    if not code.lstrip().startswith(MARKUP_KEYWORDS[diagram_type]):
        first_line = code.strip().split("\n", 1)[0][:40]
        raise DiagramValidationError(
            DiagramStage.name,
            f"{diagram_type.value} markup starts with '{first_line}'"
        )
    return code.strip()


def template_diagram(candidate: DiagramCandidate) -> str:
    if candidate.type == DiagramType.FLOWCHART:
        return ("flowchart TD\n"
                "    A[Start] --> B[Process]\n"
                "    B --> C{Complete?}\n"
                "    C -->|Yes| D[End]\n"
                "    C -->|No| B")
    if candidate.type == DiagramType.SEQUENCE:
        return ("sequenceDiagram\n"
                "    participant User\n"
                "    participant System\n"
                "    User->>System: Request\n"
                "    System-->>User: Response")
    if candidate.type == DiagramType.STATE:
        return ("stateDiagram-v2\n"
                "    [*] --> Active\n"
                "    Active --> Inactive\n"
                "    Inactive --> Active\n"
                "    Inactive --> [*]")
    root = candidate.keywords[0] if candidate.keywords else "Topic"
    lines = ["mindmap", f"  root(({root}))"]
    lines.extend(f"    {keyword}" for keyword in candidate.keywords[1:4])
    return "\n".join(lines)


def build_spec(candidate: DiagramCandidate, code: str, from_template: bool = False) -> DiagramSpec:
    label = candidate.type.value.replace("_", " ")
    if from_template:
        description = f"Basic {label} diagram"
    else:
        description = f"{label.capitalize()} diagram illustrating {', '.join(candidate.keywords)}"
    return DiagramSpec(type=candidate.type, title=DIAGRAM_TITLES[candidate.type],
                       description=description, diagram_code=code)


class DiagramStage(Stage):
    name = "diagrams"

    async def run(self, state: SessionState) -> StateDelta:
        if not state.config.generate_diagrams:
            logger.info(f"Diagram generation disabled for {state.session_id}")
            return {}

        candidates = detect_candidates(state)
        diagrams = []
        warnings = []
        for candidate in candidates:
            try:
                code = validate_diagram(candidate.type, await self._generate(state, candidate))
                diagrams.append(build_spec(candidate, code))
            except (ServiceUnavailable, DiagramValidationError) as e:
                logger.warning(f"Using template {candidate.type.value} diagram: {e}")
                warnings.append(f"{DIAGRAM_TITLES[candidate.type]} diagram replaced with template: {e}")
                diagrams.append(build_spec(candidate, template_diagram(candidate), from_template=True))

        logger.info(f"Generated {len(diagrams)} diagrams for {state.session_id}")
        return {"diagrams": diagrams, "warnings": warnings}

    async def _generate(self, state: SessionState, candidate: DiagramCandidate) -> str:
        prompt = DIAGRAM_PROMPT.format(
            kind=candidate.type.value.replace("_", " "),
            context=candidate.context,
            keywords=", ".join(candidate.keywords),
            example=SYNTAX_EXAMPLES[candidate.type],
        )
        return extract_diagram_code(await self.ask(state, prompt, temperature=0.5, max_tokens=2000))

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        if not state.config.generate_diagrams:
            return {}
        return {"diagrams": [build_spec(c, template_diagram(c), from_template=True)
                             for c in detect_candidates(state)]}
