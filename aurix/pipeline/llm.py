"""Language-model service clients used by the pipeline stages."""

import asyncio
import logging
from typing import List, Optional

import aiohttp

from ..errors import ModelTimeout, ServiceUnavailable
from ..models.document import ModelProvider

logger = logging.getLogger(__name__)


class LanguageModelService:
    """Call contract shared by all providers.

    Implementations raise ``ServiceUnavailable`` when the service cannot be
    reached or answers with an error.
    """

    async def generate(self, prompt: str, model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 1000) -> str:
        raise NotImplementedError


class OllamaService(LanguageModelService):
    """Local Ollama server client."""

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "llama3"):
        self.base_url = base_url.rstrip("/")
        self.default_model = model
        logger.info(f"OllamaService initialized: {self.base_url} (model: {model})")

    async def generate(self, prompt: str, model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 1000) -> str:
        selected_model = model or self.default_model
        data = {
            "model": selected_model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(f"{self.base_url}/api/generate", json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ServiceUnavailable(f"Ollama API error: {response.status} - {error_text}")
                    result = await response.json()
        except aiohttp.ClientError as e:
            raise ServiceUnavailable(f"Ollama unreachable at {self.base_url}: {e}") from e

        return result.get("response", "")

    async def is_available(self) -> bool:
        """Check if the Ollama server is running."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"{self.base_url}/api/tags") as response:
                    return response.status == 200
        except aiohttp.ClientError as e:
            logger.warning(f"Ollama not available: {e}")
            return False

    async def list_models(self) -> List[str]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"{self.base_url}/api/tags") as response:
                    if response.status != 200:
                        logger.error(f"Failed to list Ollama models: {response.status}")
                        return []
                    data = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Failed to list Ollama models: {e}")
            return []
        return [m["name"] for m in data.get("models", []) if "name" in m]


class ChatGPTService(LanguageModelService):
    """OpenAI chat completions client."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini",
                 base_url: str = "https://api.openai.com/v1/chat/completions"):
        """Initialize ChatGPT service.

        Args:
            api_key: OpenAI API key
            model: Default chat model
        """
        self.api_key = api_key
        self.default_model = model
        self.base_url = base_url

        logger.info(f"ChatGPTService initialized with model: {model}")

    async def generate(self, prompt: str, model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 1000) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        data = {
            "model": model or self.default_model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "temperature": temperature,
            "max_tokens": max_tokens
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.base_url, headers=headers, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ServiceUnavailable(f"ChatGPT API error: {response.status} - {error_text}")
                    result = await response.json()
        except aiohttp.ClientError as e:
            raise ServiceUnavailable(f"ChatGPT API unreachable: {e}") from e

        return result["choices"][0]["message"]["content"].strip()


def create_language_model(config) -> LanguageModelService:
    """Build the configured provider from an ``AurixConfig``."""
    provider = config.get('pipeline.llm.provider', ModelProvider.OLLAMA.value)
    model = config.get('pipeline.llm.model', 'llama3')

    if provider == ModelProvider.OPENAI.value:
        api_key = config.get('pipeline.llm.api_key')
        if not api_key:
            raise ValueError("pipeline.llm.api_key is required for the openai provider")
        return ChatGPTService(api_key=api_key, model=model)
    if provider != ModelProvider.OLLAMA.value:
        logger.warning(f"Unknown language-model provider '{provider}', using ollama")
    return OllamaService(base_url=config.get('pipeline.llm.base_url', 'http://localhost:11434'),
                         model=model)


async def call_model(llm: LanguageModelService, prompt: str, model: Optional[str] = None,
                     timeout: float = 30.0, temperature: float = 0.7,
                     max_tokens: int = 1000) -> str:
    """Call ``llm.generate`` bounded by ``timeout`` seconds.

    Raises:
        ModelTimeout: If the call did not finish in time (it is cancelled)
        ServiceUnavailable: For any other failure of the service
    """
    try:
        return await asyncio.wait_for(
            llm.generate(prompt, model=model, temperature=temperature, max_tokens=max_tokens),
            timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise ModelTimeout(f"Language model did not answer within {timeout}s") from e
    except ServiceUnavailable:
        raise
    except Exception as e:
        raise ServiceUnavailable(f"Language model call failed: {e}") from e
