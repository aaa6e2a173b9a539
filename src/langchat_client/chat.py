from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Iterator, Optional

from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import ConfigDict, PrivateAttr

from langchat_client._config import DEFAULT_TIMEOUT_S
from langchat_client._errors import LangchatStreamError
from langchat_client._sse import StreamEvent
from langchat_client.client import LangchatClient


def _text_from_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "".join(parts)
    return ""


def _last_message_text(messages: list[BaseMessage]) -> str:
    """The backend takes a single message: send the text of the last one."""
    if not messages:
        raise ValueError("At least one message is required.")
    return _text_from_content(messages[-1].content)


class _EventFilter:
    """
    Turns stream events into content chunks.

    The data line sent right after `event: done` / `event: error` is the payload of
    that event, not reply content. After `done` it is skipped; after `error` it
    becomes the message of the raised LangchatStreamError.
    """

    def __init__(self) -> None:
        self._pending: str | None = None

    def __call__(self, event: StreamEvent) -> ChatGenerationChunk | None:
        if event.type in ("done", "error"):
            self._pending = event.type
            return None
        if event.type == "end":
            self.finish()
            return None
        if event.type != "chunk":
            return None
        pending, self._pending = self._pending, None
        if pending == "error":
            raise LangchatStreamError(event.data)
        if pending == "done":
            return None
        return ChatGenerationChunk(message=AIMessageChunk(content=event.data or ""))

    def finish(self) -> None:
        """Raise if the stream stopped between an `error` marker and its data line."""
        if self._pending == "error":
            self._pending = None
            raise LangchatStreamError(None)


class ChatLangchat(BaseChatModel):
    """
    LangChain ChatModel over the langchat backend.

    Streaming contract:
    - .invoke/.ainvoke use POST /chat
    - .stream/.astream consume POST /chat/stream and emit message chunks until `end`
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_url: Optional[str] = None
    origin: Optional[str] = None
    timeout_s: float = DEFAULT_TIMEOUT_S

    enable_skills: bool = True
    enable_mcp: bool = False

    _client: LangchatClient = PrivateAttr()

    def __init__(
        self,
        *,
        base_url: str | None = None,
        origin: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        enable_skills: bool = True,
        enable_mcp: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            base_url=base_url,
            origin=origin,
            timeout_s=timeout_s,
            enable_skills=enable_skills,
            enable_mcp=enable_mcp,
            **kwargs,
        )
        self._client = LangchatClient(base_url=self.base_url, origin=self.origin, timeout_s=self.timeout_s)

    @property
    def _llm_type(self) -> str:
        return "langchat-chat"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            "base_url": self._client._http.base_url,
            "timeout_s": self.timeout_s,
            "enable_skills": self.enable_skills,
            "enable_mcp": self.enable_mcp,
        }

    def _request_args(self, messages: list[BaseMessage], **kwargs: Any) -> dict[str, Any]:
        """
        Build the chat call arguments.
        Unrelated kwargs injected by the Runnable layer are ignored.
        """
        enable_skills = kwargs.get("enable_skills")
        enable_mcp = kwargs.get("enable_mcp")
        return {
            "message": _last_message_text(messages),
            "enable_skills": self.enable_skills if enable_skills is None else bool(enable_skills),
            "enable_mcp": self.enable_mcp if enable_mcp is None else bool(enable_mcp),
        }

    @staticmethod
    def _parse_chat_result(data: Any) -> ChatResult:
        content = ""
        response_metadata: dict[str, Any] = {}
        if isinstance(data, dict):
            if isinstance(data.get("response"), str):
                content = data["response"]
            if data.get("error"):
                response_metadata["error"] = data["error"]
        msg = AIMessage(content=content, response_metadata=response_metadata)
        return ChatResult(generations=[ChatGeneration(message=msg)])

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        data = self._client.chat(**self._request_args(messages, **kwargs))
        return self._parse_chat_result(data)

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        data = await self._client.achat(**self._request_args(messages, **kwargs))
        return self._parse_chat_result(data)

    def _stream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        to_chunk = _EventFilter()
        with contextlib.closing(self._client.iter_chat_events(**self._request_args(messages, **kwargs))) as events:
            for event in events:
                chunk = to_chunk(event)
                if chunk is not None:
                    yield chunk
                if event.type == "end":
                    return
        to_chunk.finish()

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        to_chunk = _EventFilter()
        events = self._client.aiter_chat_events(**self._request_args(messages, **kwargs))
        async with contextlib.aclosing(events):
            async for event in events:
                chunk = to_chunk(event)
                if chunk is not None:
                    yield chunk
                if event.type == "end":
                    return
        to_chunk.finish()
