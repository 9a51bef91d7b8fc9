"""OpenAI-compatible chat completions providers."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any, ClassVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from aichat._logger import get_logger
from aichat.errors import (
    ProviderAuthError,
    ProviderResponseError,
    ProviderTransportError,
    ProviderUpstreamError,
)
from aichat.providers.base import AIProvider, ChatMessage, ProviderInfo

logger = get_logger(__name__)

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
OPENROUTER_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_APP_REFERER = "https://github.com/aichat-cli"
DEFAULT_APP_TITLE = "aichat"

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


def _user_agent() -> str:
    try:
        return f"aichat/{version('aichat')}"
    except PackageNotFoundError:
        return "aichat"


def create_async_http_client(
    *,
    extra_headers: dict[str, str] | None = None,
    timeout: float = 60.0,
    connect: float = 5.0,
) -> httpx.AsyncClient:
    """Create a new httpx.AsyncClient with optional extra headers.

    Args:
        extra_headers: Additional headers to include in all requests.
        timeout: Total timeout in seconds.
        connect: Connection timeout in seconds.

    Returns:
        A new httpx.AsyncClient instance (not cached).
    """
    headers = {"User-Agent": _user_agent()}
    if extra_headers:
        headers.update(extra_headers)

    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout=timeout, connect=connect),
        headers=headers,
    )


def _error_message(body: bytes) -> str | None:
    """Extract error.message from an OpenAI style error body."""
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return None


class OpenAICompatibleProvider(AIProvider):
    """Speaks the OpenAI chat completions protocol over httpx.

    Blocking sends are retried on transport failures; streams never are,
    because fragments may already have been delivered.
    """

    default_endpoint: ClassVar[str] = OPENAI_ENDPOINT

    def __init__(
        self,
        info: ProviderInfo,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        connect_timeout: float = 5.0,
        max_retries: int = 3,
        retry_multiplier: float = 1.0,
    ) -> None:
        """Initialize the provider.

        Args:
            info: Provider description; an empty endpoint selects the family default.
            client: Shared client. When None a client is opened per request.
            timeout: Total request timeout in seconds.
            connect_timeout: Connection timeout in seconds.
            max_retries: Attempts for send_message, including the first.
            retry_multiplier: Exponential backoff multiplier in seconds.
        """
        super().__init__(info)
        self._client = client
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.max_retries = max(1, max_retries)
        self.retry_multiplier = retry_multiplier

    @property
    def endpoint(self) -> str:
        return self.info.endpoint or self.default_endpoint

    def extra_headers(self) -> dict[str, str]:
        """Family specific headers sent with every request."""
        return {}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def send_message(self, history: Sequence[ChatMessage], api_key: str, model: str) -> str:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ProviderTransportError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=10),
            reraise=True,
        )
        return await retrying(self._send_once, self._build_payload(history, model, stream=False), api_key)

    async def stream_message(self, history: Sequence[ChatMessage], api_key: str, model: str) -> AsyncIterator[str]:
        payload = self._build_payload(history, model, stream=True)
        async with self._open_client() as client:
            try:
                async with client.stream("POST", self.endpoint, json=payload, headers=self._headers(api_key)) as response:
                    if not response.is_success:
                        body = await response.aread()
                        self._raise_for_status(response.status_code, body)
                    async for line in response.aiter_lines():
                        line = line.strip()
                        if not line or line.startswith(":") or not line.startswith(SSE_DATA_PREFIX):
                            continue
                        data = line[len(SSE_DATA_PREFIX) :].strip()
                        if data == SSE_DONE:
                            return
                        chunk = self._parse_stream_chunk(data)
                        if chunk:
                            yield chunk
            except httpx.TransportError as e:
                logger.debug("Stream from %s broke: %s", self.name, e)
                raise ProviderTransportError(f"stream from {self.name} failed: {e}", cause=e) from e

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with create_async_http_client(timeout=self.timeout, connect=self.connect_timeout) as client:
            yield client

    def _headers(self, api_key: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {api_key}"}
        headers.update(self.extra_headers())
        return headers

    def _build_payload(self, history: Sequence[ChatMessage], model: str, *, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [message.model_dump() for message in history],
        }
        if stream:
            payload["stream"] = True
        return payload

    async def _send_once(self, payload: dict[str, Any], api_key: str) -> str:
        async with self._open_client() as client:
            try:
                response = await client.post(self.endpoint, json=payload, headers=self._headers(api_key))
            except httpx.TransportError as e:
                logger.debug("Request to %s failed: %s", self.name, e)
                raise ProviderTransportError(f"request to {self.name} failed: {e}", cause=e) from e

        if not response.is_success:
            self._raise_for_status(response.status_code, response.content)
        return self._parse_completion(response.content)

    def _raise_for_status(self, status_code: int, body: bytes) -> None:
        message = _error_message(body) or f"API returned status {status_code}"
        logger.debug("%s answered %d: %s", self.name, status_code, message)
        if status_code in (401, 403):
            raise ProviderAuthError(message, status_code=status_code)
        raise ProviderUpstreamError(message, status_code=status_code)

    def _parse_completion(self, body: bytes) -> str:
        try:
            payload = json.loads(body)
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(f"unexpected response from {self.name}", cause=e) from e
        if content is None:
            return ""
        if not isinstance(content, str):
            raise ProviderResponseError(f"unexpected content type from {self.name}")
        return content

    def _parse_stream_chunk(self, data: str) -> str:
        try:
            payload = json.loads(data)
        except ValueError as e:
            raise ProviderResponseError(f"malformed stream chunk from {self.name}", cause=e) from e
        if not isinstance(payload, dict):
            raise ProviderResponseError(f"malformed stream chunk from {self.name}")

        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderUpstreamError(message or f"{self.name} reported a stream error")

        choices = payload.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        delta = choices[0].get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        return content if isinstance(content, str) else ""


class OpenAIProvider(OpenAICompatibleProvider):
    """api.openai.com chat completions."""

    default_endpoint = OPENAI_ENDPOINT


class OpenRouterProvider(OpenAICompatibleProvider):
    """openrouter.ai chat completions, with the app attribution headers it reads."""

    default_endpoint = OPENROUTER_ENDPOINT

    def __init__(
        self,
        info: ProviderInfo,
        *,
        app_referer: str = DEFAULT_APP_REFERER,
        app_title: str = DEFAULT_APP_TITLE,
        **kwargs: Any,
    ) -> None:
        super().__init__(info, **kwargs)
        self.app_referer = app_referer
        self.app_title = app_title

    def extra_headers(self) -> dict[str, str]:
        return {"HTTP-Referer": self.app_referer, "X-Title": self.app_title}
