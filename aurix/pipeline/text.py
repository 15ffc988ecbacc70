"""Deterministic text helpers shared by the pipeline stages."""

import re
from collections import Counter
from typing import Iterable, List, Set

SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
TOKEN_RE = re.compile(r"[a-z0-9_]+(?:'[a-z]+)?")

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'from', 'is', 'are', 'was', 'were', 'been', 'be', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'can', 'this', 'that', 'these', 'those',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'them', 'their', 'what', 'which', 'who', 'when',
    'where', 'why', 'how', 'there', 'then', 'than', 'into', 'about', 'some', 'just', 'also',
    'very', 'really', 'like', 'so', 'our', 'your', 'its', 'if', 'not', 'all', 'any', 'each',
])

TECHNICAL_PATTERNS = [
    re.compile(r"^[A-Z]{2,}s?$"),  # Acronyms
    re.compile(r"\d"),
    re.compile(r"^[a-z]+[A-Z]"),  # camelCase
    re.compile(r"[a-z0-9]_[a-z0-9]", re.IGNORECASE),  # snake_case
    re.compile(r"\w\(\)"),  # function calls
    re.compile(
        r"^(algo|api|async|auth|cache|cli|cpu|crud|css|db|debug|dev|dns|dom|dto|env|gui|html|http|"
        r"ide|ipc|json|jwt|lib|log|npm|orm|os|ram|regex|req|res|sdk|sql|ssh|ssl|tcp|tls|ui|url|"
        r"uuid|vm|xml)$",
        re.IGNORECASE
    ),
]

TECHNICAL_SUFFIXES = ('tion', 'ment', 'ity', 'ness', 'ism', 'ize', 'ify', 'ate')

CONCEPT_PATTERNS = [
    re.compile(r"\b\w+\s+\w+\s+(?:system|method|approach|technique|process|model)\b", re.IGNORECASE),
    re.compile(r"\b(?:data|machine|artificial)\s+\w+", re.IGNORECASE),
]

_EDGE_PUNCTUATION = ".,;:!?\"'`"


def clean_transcript(text: str) -> str:
    """Collapse whitespace and normalise spacing around punctuation."""
    text = re.sub(r"\s+", " ", text.strip())
    text = re.sub(r"\s+([.!?,])", r"\1", text)
    return re.sub(r"(\w)([.!?])([A-Z])", r"\1\2 \3", text)


def split_sentences(text: str) -> List[str]:
    """Split on terminal punctuation; trailing unterminated text is kept."""
    return [s.strip() for s in SENTENCE_RE.findall(text) if s.strip()]


def tokenize(text: str) -> List[str]:
    return TOKEN_RE.findall(text.lower())


def keywords(text: str, min_length: int = 4) -> List[str]:
    """Tokens of at least ``min_length`` characters that are not stop words."""
    return [t for t in tokenize(text) if len(t) >= min_length and t not in STOP_WORDS]


def top_keywords(text: str, limit: int = 5) -> List[str]:
    """Most frequent keywords, ties broken by first occurrence."""
    return [word for word, _count in Counter(keywords(text)).most_common(limit)]


def is_technical_term(word: str) -> bool:
    stripped = word.strip(_EDGE_PUNCTUATION)
    if not stripped:
        return False
    if any(pattern.search(stripped) for pattern in TECHNICAL_PATTERNS):
        return True
    if len(stripped) > 8 and stripped.lower().endswith(TECHNICAL_SUFFIXES):
        return True
    # Very long words tend to be technical
    return len(stripped) > 12


def count_technical_terms(words: Iterable[str]) -> int:
    return sum(1 for word in words if is_technical_term(word))


def detect_concepts(text: str) -> Set[str]:
    """Capitalised mid-sentence words plus multi-word concept phrases, lower-cased."""
    concepts = set()
    for sentence in split_sentences(text):
        words = sentence.split()
        for word in words[1:]:
            stripped = word.strip(_EDGE_PUNCTUATION)
            if len(stripped) > 3 and re.match(r"^[A-Z][a-z]+", stripped):
                concepts.add(stripped.lower())
        for pattern in CONCEPT_PATTERNS:
            concepts.update(match.lower() for match in pattern.findall(sentence))
    return concepts


def word_count(text: str) -> int:
    return len(text.split())


def truncate_words(text: str, max_words: int) -> str:
    """Bound ``text`` to ``max_words`` whitespace-separated words, keeping line breaks."""
    if max_words <= 0 or word_count(text) <= max_words:
        return text
    kept = 0
    lines = []
    for line in text.split("\n"):
        words = line.split()
        if kept + len(words) > max_words:
            remaining = max_words - kept
            if remaining > 0:
                lines.append(" ".join(words[:remaining]) + "...")
            break
        lines.append(line)
        kept += len(words)
    return "\n".join(lines).rstrip()
