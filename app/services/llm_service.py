"""LLM gateway offering one-shot, constrained and streaming completions."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, ClassVar, Dict, Optional, Protocol, Sequence

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings

ChatTurn = Dict[str, str]


@dataclass
class LLMResult:
    """Structured response returned by the :class:`LLMService`."""

    provider: str
    model: str
    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    raw_response: Dict[str, Any]


class LLMProviderError(RuntimeError):
    """Raised when a provider returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LLMConfigurationError(LLMProviderError):
    """Raised before any network I/O when no credential is configured."""


class LLMStreamError(LLMProviderError):
    """Raised when a streaming completion fails after it was opened."""

    def __init__(self, message: str, *, fragments_yielded: int, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message, status_code=status_code, body=body)
        self.fragments_yielded = fragments_yielded


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, LLMConfigurationError):
        return False
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, LLMProviderError):
        return exc.status_code is not None and (exc.status_code == 429 or exc.status_code >= 500)
    return False


class BaseLLMProvider(Protocol):
    """Protocol shared by provider implementations."""

    name: str

    async def generate(self, messages: Sequence[ChatTurn], **kwargs: Any) -> LLMResult:  # pragma: no cover - interface definition
        """Generate a chat completion."""

    def stream(self, messages: Sequence[ChatTurn], **kwargs: Any) -> AsyncIterator[str]:  # pragma: no cover - interface definition
        """Yield incremental completion text."""


@dataclass
class OpenAIProvider:
    """Generate chat completions using the OpenAI API."""

    api_key: Optional[str]
    model: str
    base_url: str = "https://api.openai.com/v1"
    request_timeout: float = 30.0
    max_retries: int = 3
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    name: str = "openai"

    COST_PER_1K_TOKENS: ClassVar[Dict[str, Dict[str, float]]] = {
        "gpt-4o-mini": {"prompt": 0.0006, "completion": 0.0024},
        "gpt-4o": {"prompt": 0.01, "completion": 0.03},
        "gpt-3.5-turbo": {"prompt": 0.0005, "completion": 0.0015},
    }

    def _require_credentials(self) -> None:
        if not self.api_key:
            raise LLMConfigurationError("Missing OPENAI_API_KEY")

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if settings.OPENAI_ORG_ID:
            headers["OpenAI-Organization"] = settings.OPENAI_ORG_ID
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.request_timeout,
            transport=self.transport,
        )

    def _build_payload(self, messages: Sequence[ChatTurn], kwargs: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": kwargs.get("model") or self.model,
            "messages": list(messages),
        }
        if kwargs.get("temperature") is not None:
            payload["temperature"] = kwargs["temperature"]
        if kwargs.get("max_tokens") is not None:
            payload["max_tokens"] = kwargs["max_tokens"]
        if "response_format" in kwargs:
            payload["response_format"] = kwargs["response_format"]
        return payload

    def _estimate_cost(self, model: str, usage: Dict[str, Any]) -> float:
        model_rates = self.COST_PER_1K_TOKENS.get(model, {"prompt": 0.0, "completion": 0.0})
        prompt_cost = (usage.get("prompt_tokens", 0) / 1000) * model_rates["prompt"]
        completion_cost = (usage.get("completion_tokens", 0) / 1000) * model_rates["completion"]
        return round(prompt_cost + completion_cost, 6)

    async def _post_once(self, payload: Dict[str, Any]) -> httpx.Response:
        async with self._client() as client:
            response = await client.post("/chat/completions", json=payload, headers=self._build_headers())
        if response.status_code >= 400:
            logger.error("OpenAI returned error", status=response.status_code, body=response.text)
            raise LLMProviderError(
                f"OpenAI error {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    async def generate(self, messages: Sequence[ChatTurn], **kwargs: Any) -> LLMResult:
        self._require_credentials()
        payload = self._build_payload(messages, kwargs)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_retries)),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, "WARNING"),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._post_once(payload)
        except httpx.HTTPError as exc:
            logger.error("OpenAI request failed", error=str(exc))
            raise LLMProviderError(f"OpenAI request failed: {exc}") from exc

        data = response.json()
        choice = (data.get("choices") or [{}])[0]
        content = (choice.get("message") or {}).get("content") or ""

        usage = data.get("usage", {})
        result = LLMResult(
            provider=self.name,
            model=payload["model"],
            content=content.strip(),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", usage.get("prompt_tokens", 0) + usage.get("completion_tokens", 0)),
            cost=self._estimate_cost(payload["model"], usage),
            raw_response=data,
        )
        logger.info(
            "OpenAI completion success",
            model=result.model,
            tokens=result.total_tokens,
            cost=result.cost,
        )
        return result

    async def stream(self, messages: Sequence[ChatTurn], **kwargs: Any) -> AsyncIterator[str]:
        """Yield content deltas from a server-sent-events completion stream.

        The HTTP connection is scoped to this generator: it is released when
        the stream finishes, when the consumer stops early (``aclose``) and
        when an error propagates.
        """

        self._require_credentials()
        payload = self._build_payload(messages, kwargs)
        payload["stream"] = True
        yielded = 0

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", "/chat/completions", json=payload, headers=self._build_headers()
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="ignore")
                        logger.error("OpenAI stream returned error", status=response.status_code, body=body)
                        raise LLMStreamError(
                            f"OpenAI error {response.status_code}",
                            fragments_yielded=0,
                            status_code=response.status_code,
                            body=body,
                        )

                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        data = line[len("data: ") :].strip()
                        if data == "[DONE]":
                            break
                        try:
                            parsed = json.loads(data)
                        except json.JSONDecodeError:
                            logger.debug("Skipping malformed stream event", event=data[:120])
                            continue
                        delta = ((parsed.get("choices") or [{}])[0].get("delta") or {}).get("content")
                        if delta:
                            yielded += 1
                            yield delta
        except httpx.HTTPError as exc:
            logger.warning("OpenAI stream transport error", error=str(exc), fragments=yielded)
            raise LLMStreamError(
                "OpenAI stream interrupted", fragments_yielded=yielded
            ) from exc

        logger.debug("OpenAI stream finished", model=payload["model"], fragments=yielded)


class LLMService:
    """Gateway over a single text-generation provider in three modes."""

    CONSTRAINED_TEMPERATURE: ClassVar[float] = 0.0
    CONSTRAINED_MAX_TOKENS: ClassVar[int] = 20

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        *,
        constrained_model: Optional[str] = None,
    ) -> None:
        self._provider = provider or self._build_default_provider()
        self.constrained_model = constrained_model or settings.TRANSLATION_MODEL

    def _build_default_provider(self) -> BaseLLMProvider:
        return OpenAIProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            base_url=str(settings.OPENAI_API_BASE or "https://api.openai.com/v1"),
            request_timeout=settings.LLM_REQUEST_TIMEOUT_SECONDS,
            max_retries=settings.LLM_MAX_RETRIES,
        )

    @property
    def provider_name(self) -> str:
        return self._provider.name

    async def generate_chat_completion(
        self,
        messages: Sequence[ChatTurn],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> LLMResult:
        """Generate a chat completion using the configured provider."""

        result = await self._provider.generate(
            messages, temperature=temperature, max_tokens=max_tokens, model=model
        )
        logger.debug(
            "LLM provider success",
            provider=self._provider.name,
            tokens=result.total_tokens,
            cost=result.cost,
        )
        return result

    async def complete(self, turns: Sequence[ChatTurn], *, temperature: Optional[float] = None) -> str:
        """Return the trimmed reply for ``turns``; empty text is a valid reply."""

        result = await self.generate_chat_completion(turns, temperature=temperature)
        return result.content

    async def complete_constrained(self, turns: Sequence[ChatTurn]) -> str:
        """Low-temperature, short completion for single words or phrases."""

        result = await self.generate_chat_completion(
            turns,
            temperature=self.CONSTRAINED_TEMPERATURE,
            max_tokens=self.CONSTRAINED_MAX_TOKENS,
            model=self.constrained_model,
        )
        return result.content

    def stream_complete(self, turns: Sequence[ChatTurn]) -> AsyncIterator[str]:
        """Return a lazy, forward-only stream of reply fragments."""

        return self._provider.stream(turns)


__all__ = [
    "BaseLLMProvider",
    "ChatTurn",
    "LLMConfigurationError",
    "LLMProviderError",
    "LLMResult",
    "LLMService",
    "LLMStreamError",
    "OpenAIProvider",
]
