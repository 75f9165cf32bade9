"""OpenAI-compatible chat completions backend over httpx."""

import logging
from typing import Any, Optional

import httpx

from config.exceptions import (
    ConfigurationError,
    LLMRateLimitError,
    LLMTimeoutError,
    ParseError,
    TransportError,
)
from providers.base import (
    CompletionOptions,
    CompletionResult,
    Message,
    StructuredResult,
    TokenUsage,
    estimate_tokens,
)
from tools.llm_client import parse_json_response

logger = logging.getLogger(__name__)


def get_httpx_timeout(read_timeout: float) -> httpx.Timeout:
    """Short connect/pool timeouts, long read timeout for generation."""
    return httpx.Timeout(connect=10.0, write=60.0, read=read_timeout or 120.0, pool=10.0)


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and "error" in payload:
        detail = payload["error"]
        if isinstance(detail, dict):
            return str(detail.get("message", detail))
        return str(detail)
    return response.text[:500]


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class OpenAICompatibleProvider:
    """Talks to ``{base_url}/chat/completions`` with a bearer token.

    Works with OpenAI and any server exposing the same API (vLLM, Ollama,
    OpenRouter, ...).
    """

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key not configured", {"provider": self.name})
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=get_httpx_timeout(self.timeout), transport=self._transport)

    def _body(self, messages: list[Message], options: CompletionOptions, json_mode: bool) -> dict:
        body: dict[str, Any] = {
            "model": options.model or self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature,
        }
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.stop:
            body["stop"] = options.stop
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    async def _post(self, body: dict) -> dict:
        headers = self._headers()
        url = f"{self.base_url}/chat/completions"
        logger.debug("POST %s model=%s messages=%d", url, body["model"], len(body["messages"]))
        try:
            async with self._client() as client:
                response = await client.post(url, headers=headers, json=body)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"{self.name} request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            text = _error_text(e.response)
            logger.error("%s API HTTP error %d: %s", self.name, status, text)
            if status in (401, 403):
                raise ConfigurationError(f"{self.name} rejected credentials: {text}", {"status_code": status}) from e
            if status == 429:
                raise LLMRateLimitError(f"{self.name} rate limit: {text}", retry_after=_retry_after(e.response)) from e
            raise TransportError(f"{self.name} API error: {text}", status_code=status) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise ParseError(f"{self.name} returned a non-JSON body") from e

    async def _chat(
        self, messages: list[Message], options: Optional[CompletionOptions], json_mode: bool
    ) -> CompletionResult:
        options = options or CompletionOptions()
        payload = await self._post(self._body(messages, options, json_mode))

        choices = payload.get("choices") or []
        if not choices:
            raise ParseError("Response has no choices", raw_response=str(payload))
        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""

        usage_raw = payload.get("usage") or {}
        prompt_tokens = usage_raw.get("prompt_tokens", 0)
        completion_tokens = usage_raw.get("completion_tokens", 0)
        usage = TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=usage_raw.get("total_tokens", prompt_tokens + completion_tokens),
        )
        logger.debug(
            "%s response: %d chars, tokens=%d/%d, finish=%s",
            self.name, len(content), usage.prompt_tokens, usage.completion_tokens,
            choice.get("finish_reason"),
        )
        return CompletionResult(
            content=content,
            usage=usage,
            finish_reason=choice.get("finish_reason"),
            model=payload.get("model", self.model),
        )

    async def complete(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        return await self._chat(messages, options, json_mode=False)

    async def complete_structured(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> StructuredResult:
        result = await self._chat(messages, options, json_mode=True)
        try:
            data = parse_json_response(result.content)
        except ValueError as e:
            raise ParseError(str(e), raw_response=result.content) from e
        return StructuredResult(data=data, usage=result.usage, raw=result.content)

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    async def is_available(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/models", headers=self._headers())
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("%s availability check failed: %s", self.name, e)
            return False
