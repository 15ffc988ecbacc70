"""Transcript normalization stage."""

import logging

from .base import Stage, StateDelta
from ..text import clean_transcript, split_sentences, tokenize
from ...errors import EmptyTranscript
from ...models.document import SessionState, TranscriptSegment

logger = logging.getLogger(__name__)

# Rough speaking rate used to estimate segment offsets (150 words per minute)
MS_PER_WORD = 400


class NormalizationStage(Stage):
    name = "normalization"
    fatal = True

    async def run(self, state: SessionState) -> StateDelta:
        transcript = clean_transcript(state.transcript or "")
        if not tokenize(transcript):
            raise EmptyTranscript(f"Transcript for session {state.session_id} contains no usable text")

        sentences = split_sentences(transcript)
        delta: StateDelta = {"transcript": transcript}

        # Segments from the transcription layer carry real timestamps
        if not state.segments:
            segments = []
            words_before = 0
            for sentence in sentences:
                segments.append(TranscriptSegment(text=sentence,
                                                  timestamp_ms=words_before * MS_PER_WORD,
                                                  confidence=1.0))
                words_before += len(sentence.split())
            delta["segments"] = segments

        logger.debug(f"Normalized transcript: {len(transcript)} chars, {len(sentences)} sentences")
        return delta
