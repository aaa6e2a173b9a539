from __future__ import annotations

from langchat_client.chat import ChatLangchat
from langchat_client.client import ChatRequest, LangchatClient
from langchat_client._errors import LangchatError, LangchatStreamError, LangchatTransportError
from langchat_client._sse import StreamCallbacks, StreamDecoder, StreamEvent, adecode_stream, decode_stream

__all__ = [
    "ChatLangchat",
    "ChatRequest",
    "LangchatClient",
    "LangchatError",
    "LangchatStreamError",
    "LangchatTransportError",
    "StreamCallbacks",
    "StreamDecoder",
    "StreamEvent",
    "adecode_stream",
    "decode_stream",
]

__version__ = "0.1.0"
