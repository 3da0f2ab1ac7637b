"""OpenAI-compatible adapter - LM Studio, vLLM, LocalAI, OpenRouter.

Completions are always streamed so that output received before a timeout can
be handed to the agent loop as partial content.
"""

import json
import logging
import time
from collections.abc import AsyncIterator

import httpx

from src.domain.entities.agent_errors import (
    DEFAULT_PARTIAL_THRESHOLD,
    AgentTimeoutError,
    NetworkFailureError,
    UpstreamError,
)
from src.domain.ports.config import OpenAICompatibleConfig
from src.domain.ports.llm import LLMMessage, LLMResponse

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter:
    """Implements LLMPort via POST /chat/completions (stream=true)."""

    def __init__(
        self,
        config: OpenAICompatibleConfig,
        partial_threshold: int = DEFAULT_PARTIAL_THRESHOLD,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._partial_threshold = partial_threshold
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create persistent async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client (call during app shutdown)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _chat_body(self, model: str, messages: list[LLMMessage], temperature: float) -> dict:
        body: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "stream": True,
        }
        if self._config.max_tokens is not None:
            body["max_tokens"] = self._config.max_tokens
        return body

    async def generate_stream(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Yield content chunks.

        Raises:
            UpstreamError: on HTTP status >= 400
            NetworkFailureError: if the server cannot be reached
            httpx.TimeoutException: passed through; generate() maps it
        """
        model = model or "default"
        url = f"{self._base_url}/chat/completions"
        try:
            async with self._get_client().stream(
                "POST", url, json=self._chat_body(model, messages, temperature)
            ) as resp:
                if resp.status_code >= 400:
                    err_body = await resp.aread()
                    err_text = err_body.decode("utf-8", errors="replace")
                    logger.error("LLM API error %s: %s", resp.status_code, err_text[:500])
                    raise UpstreamError(resp.status_code, model, err_text[:200])
                async for line in resp.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    chunk = line[6:]
                    if chunk.strip() == "[DONE]":
                        break
                    try:
                        data = json.loads(chunk)
                    except json.JSONDecodeError:
                        logger.debug("Malformed JSON chunk in stream: %s", chunk[:100])
                        continue
                    delta = (data.get("choices") or [{}])[0].get("delta", {})
                    if content := delta.get("content"):
                        yield content
        except (httpx.ConnectError, httpx.NetworkError) as e:
            logger.warning("LLM endpoint unreachable: %s", e)
            raise NetworkFailureError(url, str(e) or type(e).__name__) from e

    async def generate(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a full response by accumulating the stream.

        Raises:
            AgentTimeoutError: carrying the chunks received before the timeout
        """
        model = model or "default"
        parts: list[str] = []
        started = time.monotonic()
        try:
            async for chunk in self.generate_stream(messages, model=model, temperature=temperature):
                parts.append(chunk)
        except httpx.TimeoutException as e:
            elapsed = time.monotonic() - started
            partial = "".join(parts)
            logger.warning("LLM stream timed out after %.1fs with %d chars", elapsed, len(partial))
            raise AgentTimeoutError(
                "streaming",
                elapsed,
                float(self._config.timeout),
                partial_content=partial or None,
                partial_threshold=self._partial_threshold,
            ) from e
        return LLMResponse(content="".join(parts), model=model, done=True)

    async def is_available(self) -> bool:
        """Check if the server answers /models."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                resp = await client.get(f"{self._base_url}/models", headers=self._headers)
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("OpenAI-compatible availability check failed: %s", e)
            return False
