"""Answer generation providers.

Two providers are supported: a local Ollama server and Hugging Face's
OpenAI-compatible router. Generation is not retried; the orchestrator
recovers from failures with an extractive answer.
"""

import logging
import time
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI, OpenAIError

from ragstudio.rag.errors import GenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant that answers questions based on provided context."


@dataclass
class GenerationResult:
    """Response from a generation provider."""

    text: str
    model: str
    provider: str
    tokens_used: int
    latency_ms: float = 0.0


class OllamaGenerator:
    """Non-streaming completions from Ollama's /api/generate."""

    provider = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        api_key: str = "",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=30.0))

    async def generate(self, prompt: str, model: str) -> GenerationResult:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await self._http.post(
                f"{self.base_url}/api/generate",
                headers=headers,
                json={"model": model, "prompt": prompt, "stream": False},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GenerationError(f"Ollama API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"Ollama request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError(f"Ollama returned invalid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise GenerationError("Unexpected response format from Ollama API")

        counts = (data.get("eval_count"), data.get("prompt_eval_count"))
        return GenerationResult(
            text=data["response"],
            model=model,
            provider=self.provider,
            tokens_used=sum(c for c in counts if isinstance(c, int)),
        )

    async def aclose(self) -> None:
        await self._http.aclose()


class HuggingFaceGenerator:
    """Chat completions through the Hugging Face router."""

    provider = "huggingface"

    def __init__(self, client: AsyncOpenAI | None, max_tokens: int = 500):
        self.client = client
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, model: str) -> GenerationResult:
        if self.client is None:
            raise GenerationError("HUGGINGFACE_API_KEY is not configured")

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise GenerationError(f"HuggingFace API error: {e}") from e

        choice = response.choices[0] if response.choices else None
        return GenerationResult(
            text=(choice.message.content or "") if choice else "",
            model=response.model or model,
            provider=self.provider,
            tokens_used=response.usage.total_tokens if response.usage else 0,
        )


class Generator:
    """Dispatches a prompt to the named provider."""

    def __init__(self, ollama: OllamaGenerator, huggingface: HuggingFaceGenerator):
        self._providers = {
            ollama.provider: ollama,
            huggingface.provider: huggingface,
        }

    @property
    def providers(self) -> list[str]:
        return list(self._providers)

    async def generate(self, prompt: str, provider: str, model: str) -> GenerationResult:
        """Generate a completion.

        Raises:
            GenerationError: On an unknown provider, a provider failure or an empty answer
        """
        backend = self._providers.get(provider)
        if backend is None:
            raise GenerationError(f"Unsupported provider: {provider}")

        start_time = time.perf_counter()
        result = await backend.generate(prompt, model)
        result.latency_ms = (time.perf_counter() - start_time) * 1000

        if not result.text.strip():
            raise GenerationError(f"{provider} returned an empty answer")

        logger.info(
            f"[Generator] {provider}/{model} answered in {result.latency_ms:.0f}ms "
            f"({result.tokens_used} tokens)"
        )
        return result
