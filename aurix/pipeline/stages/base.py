"""Contract shared by all pipeline stages."""

import logging
from typing import Any, Dict, Optional

from ..llm import LanguageModelService, call_model
from ...errors import ServiceUnavailable
from ...models.document import SessionState

logger = logging.getLogger(__name__)

StateDelta = Dict[str, Any]


class Stage:
    """One step of the document pipeline.

    ``run`` receives an immutable snapshot and returns a delta; it raises
    instead of returning errors. When it raises, the runner applies the
    delta returned by ``fallback``, which must not call external services.
    Stages marked ``fatal`` have no fallback.
    """

    name = "stage"
    fatal = False

    def __init__(self, llm: Optional[LanguageModelService] = None):
        self.llm = llm

    async def run(self, state: SessionState) -> StateDelta:
        raise NotImplementedError

    def fallback(self, state: SessionState, error: Exception) -> StateDelta:
        return {}

    async def ask(self, state: SessionState, prompt: str,
                  temperature: float = 0.7, max_tokens: int = 1000) -> str:
        """Prompt the language model with the job's model and timeout."""
        if self.llm is None:
            raise ServiceUnavailable("No language model configured")
        return await call_model(
            self.llm,
            prompt,
            model=state.config.model_name,
            timeout=state.config.model_timeout_seconds,
            temperature=temperature,
            max_tokens=max_tokens,
        )
