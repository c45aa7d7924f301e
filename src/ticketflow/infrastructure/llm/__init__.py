"""
LLM Client Infrastructure
==========================

Clients for the two model-backed services the pipeline consumes:

- EmbeddingClient: OpenAI-style ``/embeddings`` endpoints over httpx, with a
  single fallback from the default provider to a secondary one.
- OpenAITextGenerator: chat completions through the ``openai`` SDK against a
  configurable OpenAI-compatible base URL.

Both are constructed from explicit config objects; nothing here reads
process-wide state after construction.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx
from openai import AsyncOpenAI

from ticketflow.core import ConfigurationException, EmbeddingException, LLMException
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Configuration ==========

@dataclass(frozen=True)
class ProviderConfig:
    """One embedding provider endpoint."""
    name: str
    base_url: str
    api_key: Optional[str] = None


@dataclass(frozen=True)
class EmbeddingClientConfig:
    """Provider list plus the choice of which one is tried first."""
    providers: List[ProviderConfig]
    default_provider: str
    model: str = "nomic-ai/nomic-embed-text-v1"
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Any) -> "EmbeddingClientConfig":
        """Build the provider table from application settings."""
        return cls(
            providers=[
                ProviderConfig("fireworks", settings.fireworks_base_url, settings.fireworks_api_key),
                ProviderConfig("together", settings.together_base_url, settings.together_api_key),
            ],
            default_provider=settings.default_embedding_provider,
            model=settings.embedding_model,
            timeout_seconds=settings.embedding_timeout_seconds,
        )

    def primary(self) -> Optional[ProviderConfig]:
        """The default provider, or None if it is not configured."""
        for provider in self.providers:
            if provider.name == self.default_provider:
                return provider
        return None

    def secondary(self) -> Optional[ProviderConfig]:
        """First configured provider other than the default."""
        for provider in self.providers:
            if provider.name != self.default_provider:
                return provider
        return None


@dataclass(frozen=True)
class TextGenerationConfig:
    """Settings for the OpenAI-compatible chat endpoint."""
    base_url: str
    api_key: Optional[str]
    model: str
    temperature: float = 0.3
    max_tokens: int = 800

    @classmethod
    def from_settings(cls, settings: Any) -> "TextGenerationConfig":
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )


# ========== Results ==========

@dataclass
class EmbeddingResult:
    """Result of an embedding generation."""
    embedding: List[float]
    model: str
    provider: str
    dimension: int = field(init=False)

    def __post_init__(self):
        self.dimension = len(self.embedding)


@dataclass
class ChatCompletionResult:
    """Result of a chat completion."""
    content: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


# ========== Interfaces ==========

class IEmbeddingClient(ABC):
    """Interface for turning text into a vector."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embed text.

        Raises:
            EmbeddingException: If no provider produced a vector
        """


class ITextGenerator(ABC):
    """Interface for chat-style text generation."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release network resources; a no-op by default."""


# ========== Embeddings ==========

def parse_embedding_response(data: Any) -> List[float]:
    """
    Extract the vector from either accepted response shape.

    Accepts ``{"data": [{"embedding": [...]}]}`` (OpenAI style) or
    ``{"embeddings": [...]}``.

    Raises:
        ValueError: If neither shape is present or the vector is empty
    """
    if not isinstance(data, dict):
        raise ValueError("embedding response is not a JSON object")

    vector = None
    items = data.get("data")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        vector = items[0].get("embedding")
    elif isinstance(data.get("embeddings"), list):
        vector = data["embeddings"]
        # Some providers wrap a single vector in a batch list
        if vector and isinstance(vector[0], list):
            vector = vector[0]

    if not isinstance(vector, list) or not vector:
        raise ValueError("embedding response has no vector")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector):
        raise ValueError("embedding vector contains non-numeric values")
    return [float(v) for v in vector]


class EmbeddingClient(IEmbeddingClient):
    """
    HTTP embedding client with one-step provider fallback.

    The default provider is always tried first. On any failure (missing key,
    transport error, non-2xx status, unparseable body) exactly one attempt is
    made against the secondary provider, and only if it has an API key.
    """

    def __init__(
        self,
        config: EmbeddingClientConfig,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def embed(self, text: str) -> List[float]:
        return (await self.generate_embedding(text)).embedding

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Embed text, falling back once to the secondary provider.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with the vector and the provider that produced it

        Raises:
            EmbeddingException: If both providers failed
        """
        primary = self._config.primary()
        errors = {}

        try:
            if primary is None:
                raise ConfigurationException(
                    f"Default embedding provider '{self._config.default_provider}' is not configured"
                )
            return await self._request(primary, text)
        except (ConfigurationException, httpx.HTTPError, ValueError) as e:
            errors[self._config.default_provider] = str(e)
            logger.warning(
                "Primary embedding provider failed",
                extra={"provider": self._config.default_provider, "error": str(e)}
            )

        secondary = self._config.secondary()
        if secondary is not None and secondary.api_key:
            try:
                result = await self._request(secondary, text)
                logger.info(
                    "Embedding generated with fallback provider",
                    extra={"provider": secondary.name}
                )
                return result
            except (httpx.HTTPError, ValueError) as e:
                errors[secondary.name] = str(e)
                logger.error(
                    "Fallback embedding provider failed",
                    extra={"provider": secondary.name, "error": str(e)}
                )

        raise EmbeddingException("Failed to generate embeddings", {"providers": errors})

    async def _request(self, provider: ProviderConfig, text: str) -> EmbeddingResult:
        if not provider.api_key:
            raise ConfigurationException(f"No API key configured for provider '{provider.name}'")

        response = await self._http.post(
            f"{provider.base_url}embeddings",
            json={"input": text, "model": self._config.model},
            headers={
                "Authorization": f"Bearer {provider.api_key}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()

        return EmbeddingResult(
            embedding=parse_embedding_response(response.json()),
            model=self._config.model,
            provider=provider.name,
        )


# ========== Text generation ==========

class OpenAITextGenerator(ITextGenerator):
    """
    Chat completions against any OpenAI-compatible endpoint.

    Raises ConfigurationException at construction when no API key is set;
    callers treat that as "no generator available".
    """

    def __init__(self, config: TextGenerationConfig, client: Optional[AsyncOpenAI] = None):
        if not config.api_key and client is None:
            raise ConfigurationException("Text generation API key not configured")

        self._config = config
        self._owns_client = client is None
        self._client = client or AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    @property
    def model(self) -> str:
        return self._config.model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate a chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature, config default when None
            max_tokens: Completion cap, config default when None
            operation: Label for logs

        Raises:
            LLMException: If the call fails or returns no content
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                messages=messages,
                temperature=self._config.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self._config.max_tokens,
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}", {"operation": operation}) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if not response.choices or not response.choices[0].message.content:
            raise LLMException("Chat completion returned no content", {"operation": operation})

        usage = response.usage
        result = ChatCompletionResult(
            content=response.choices[0].message.content,
            model=self._config.model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms,
        )

        logger.info(
            "Chat completion finished",
            extra={
                "operation": operation,
                "model": result.model,
                "latency_ms": latency_ms,
                "tokens_used": result.total_tokens,
            }
        )
        return result


def build_text_generator(config: TextGenerationConfig) -> Optional[ITextGenerator]:
    """Return a generator, or None when no API key is configured."""
    try:
        return OpenAITextGenerator(config)
    except ConfigurationException:
        logger.warning("Text generation disabled: no API key configured")
        return None
