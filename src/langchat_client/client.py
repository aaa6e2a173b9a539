"""
This module provides the client for the langchat chat backend.
It covers the health check, the request/response chat call and the streaming chat call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterator

from pydantic import BaseModel, ConfigDict, Field

from langchat_client._client import LangchatHttpClient
from langchat_client._config import DEFAULT_TIMEOUT_S, HttpConfig
from langchat_client._sse import (
    StreamCallbacks,
    StreamEvent,
    adecode_stream,
    aiter_stream_events,
    decode_stream,
    iter_stream_events,
)

HEALTH_PATH = "/health"
CHAT_PATH = "/chat"
CHAT_STREAM_PATH = "/chat/stream"


class ChatRequest(BaseModel):
    """
    Request body shared by /chat and /chat/stream.
    Serialized with the backend's camelCase field names.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    message: str
    enable_skills: bool = Field(default=True, alias="enableSkills")
    enable_mcp: bool = Field(default=False, alias="enableMCP")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(slots=True)
class LangchatClient:
    """
    Main interface for the langchat backend.
    Provides synchronous and asynchronous methods for health, chat and streaming chat.
    """
    base_url: str | None = None
    origin: str | None = None
    timeout_s: float = DEFAULT_TIMEOUT_S

    _http: LangchatHttpClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """
        Resolve the base URL and build the HTTP client after dataclass initialization.
        """
        config = HttpConfig.from_env_or_value(self.base_url, origin=self.origin, timeout_s=self.timeout_s)
        self._http = LangchatHttpClient(config=config)

    def __enter__(self) -> LangchatClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> LangchatClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def close(self) -> None:
        self._http.close()

    async def aclose(self) -> None:
        await self._http.aclose()

    def check_health(self) -> dict[str, Any]:
        """
        Query the backend health endpoint synchronously.

        Returns:
            The JSON body, e.g. {"status": "ok", "version": "1.0.0"}.
        """
        return self._http.get(HEALTH_PATH).json()

    def chat(self, message: str, enable_skills: bool = True, enable_mcp: bool = False) -> dict[str, Any]:
        """
        Send a message and wait for the full reply.

        Args:
            message: User message.
            enable_skills: Let the agent use its skills.
            enable_mcp: Let the agent use MCP tools.

        Returns:
            The JSON body unmodified, e.g. {"response": "..."}.

        Raises:
            LangchatTransportError: If the backend answers with a non-2xx status.
        """
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        return self._http.post_json(CHAT_PATH, payload).json()

    def chat_stream(
        self,
        message: str,
        enable_skills: bool = True,
        enable_mcp: bool = False,
        callbacks: StreamCallbacks | None = None,
    ) -> str:
        """
        Send a message and consume the reply as an event stream.

        Callbacks fire synchronously in the order events are parsed. An `error`
        event is reported through `callbacks.on_error` only; it is not raised.

        Returns:
            The accumulated text of every data line, once `end` is received or the
            stream is exhausted.

        Raises:
            LangchatTransportError: If the backend answers with a non-2xx status,
                before any callback fires.
        """
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        with self._http.stream_post_json(CHAT_STREAM_PATH, payload) as r:
            if not 200 <= r.status_code < 300:
                r.read()
            self._http.raise_for_status(r)
            return decode_stream(r.iter_bytes(), callbacks)

    def iter_chat_events(
        self,
        message: str,
        enable_skills: bool = True,
        enable_mcp: bool = False,
    ) -> Iterator[StreamEvent]:
        """
        Pull-based variant of chat_stream(): yield StreamEvent objects until `end`
        or exhaustion. The response is closed when the generator finishes or is closed.
        """
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        with self._http.stream_post_json(CHAT_STREAM_PATH, payload) as r:
            if not 200 <= r.status_code < 300:
                r.read()
            self._http.raise_for_status(r)
            yield from iter_stream_events(r.iter_bytes())

    async def acheck_health(self) -> dict[str, Any]:
        """
        Query the backend health endpoint asynchronously.
        """
        response = await self._http.aget(HEALTH_PATH)
        return response.json()

    async def achat(self, message: str, enable_skills: bool = True, enable_mcp: bool = False) -> dict[str, Any]:
        """
        Async version of chat().
        """
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        response = await self._http.apost_json(CHAT_PATH, payload)
        return response.json()

    async def achat_stream(
        self,
        message: str,
        enable_skills: bool = True,
        enable_mcp: bool = False,
        callbacks: StreamCallbacks | None = None,
    ) -> str:
        """
        Async version of chat_stream().
        """
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        async with self._http.astream_post_json(CHAT_STREAM_PATH, payload) as r:
            if not 200 <= r.status_code < 300:
                await r.aread()
            self._http.raise_for_status(r)
            return await adecode_stream(r.aiter_bytes(), callbacks)

    async def aiter_chat_events(
        self,
        message: str,
        enable_skills: bool = True,
        enable_mcp: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        payload = ChatRequest(message=message, enable_skills=enable_skills, enable_mcp=enable_mcp).to_payload()
        async with self._http.astream_post_json(CHAT_STREAM_PATH, payload) as r:
            if not 200 <= r.status_code < 300:
                await r.aread()
            self._http.raise_for_status(r)
            async for event in aiter_stream_events(r.aiter_bytes()):
                yield event
