from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chatinstance_cli.api_models import ChatResponse, build_chat_request
from chatinstance_cli.errors import CallError, StreamTransportError
from chatinstance_cli.message import Message

USER_AGENT = "ChatInstance CLI v1.0.0"
DEFAULT_API_URL = "https://api.chatinstance.com/v1"

_RETRYABLE = (httpx.ConnectError, httpx.ConnectTimeout)


@runtime_checkable
class ChatTransport(Protocol):
    async def send(
        self,
        provider: str,
        model: str,
        messages: list[Message],
        system_prompt: str | None = None,
    ) -> ChatResponse:
        """Single round-trip chat completion."""
        ...

    def send_streaming(
        self,
        provider: str,
        model: str,
        messages: list[Message],
        system_prompt: str | None = None,
    ) -> AsyncIterator[bytes]:
        """Raw ``text/event-stream`` chunks, in the order received."""
        ...


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt})...")


def retry_kwargs(max_attempts: int) -> dict:
    return {
        "retry": retry_if_exception_type(_RETRYABLE),
        "wait": wait_exponential(multiplier=1, min=1, max=10),
        "stop": stop_after_attempt(max(1, max_attempts)),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def error_for_response(response: httpx.Response) -> CallError:
    status = response.status_code
    if status == 401:
        return CallError("Authentication failed. Please check your API key.", status_code=status)
    if status == 429:
        return CallError("Rate limit exceeded. Please try again later.", status_code=status)
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return CallError(str(payload["message"]), status_code=status)
    return CallError(f"HTTP {status} from {response.request.url}", status_code=status)


class HttpChatTransport:
    """ChatInstance ``/chat`` endpoint over httpx."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        max_tokens: int | None = None,
        temperature: float | None = None,
        max_retries: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._retry_kwargs = retry_kwargs(max_retries)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> HttpChatTransport:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _build_request(
        self,
        provider: str,
        model: str,
        messages: list[Message],
        system_prompt: str | None,
        *,
        stream: bool,
    ) -> httpx.Request:
        body = build_chat_request(
            provider,
            model,
            messages,
            stream=stream,
            system_prompt=system_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        headers = dict(self._headers)
        if stream:
            headers["Accept"] = "text/event-stream"
        logger.debug(
            f"API request: POST /chat provider={provider}, model={model}, "
            f"messages={len(messages)}, stream={stream}"
        )
        return self._client.build_request("POST", f"{self._api_url}/chat", json=body, headers=headers)

    async def _open(self, request: httpx.Request, *, stream: bool) -> httpx.Response:
        try:
            async for attempt in AsyncRetrying(**self._retry_kwargs):
                with attempt:
                    return await self._client.send(request, stream=stream)
        except httpx.ConnectError as ex:
            raise CallError(
                "Unable to connect to ChatInstance API. Please check your internet connection."
            ) from ex
        except httpx.TimeoutException as ex:
            raise CallError(f"Request timed out: {ex}") from ex
        except httpx.HTTPError as ex:
            raise CallError(str(ex) or type(ex).__name__) from ex
        raise CallError("Request was not attempted")

    async def send(
        self,
        provider: str,
        model: str,
        messages: list[Message],
        system_prompt: str | None = None,
    ) -> ChatResponse:
        request = self._build_request(provider, model, messages, system_prompt, stream=False)
        response = await self._open(request, stream=False)
        if response.status_code >= 400:
            raise error_for_response(response)
        try:
            data: Any = response.json()
        except ValueError as ex:
            raise CallError("Response body is not valid JSON") from ex
        if not isinstance(data, dict):
            raise CallError("Response body is not a JSON object")
        result = ChatResponse.from_dict(data)
        logger.debug(f"API response: id={result.id}, total_tokens={result.usage.total_tokens}")
        return result

    async def send_streaming(
        self,
        provider: str,
        model: str,
        messages: list[Message],
        system_prompt: str | None = None,
    ) -> AsyncIterator[bytes]:
        request = self._build_request(provider, model, messages, system_prompt, stream=True)
        response = await self._open(request, stream=True)
        try:
            if response.status_code >= 400:
                await response.aread()
                raise error_for_response(response)
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as ex:
            raise StreamTransportError(f"Stream interrupted: {ex}") from ex
        finally:
            await response.aclose()
