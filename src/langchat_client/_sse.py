"""
Incremental decoder for the simplified Server-Sent Events feed of /chat/stream.

The backend writes newline-delimited `data: <payload>` and `event: <name>` lines
(no `id:`/`retry:` fields, no multi-line folding). Chunks arrive with arbitrary
boundaries, so decoding is buffered across chunks, including UTF-8 sequences
split between two chunks.
"""

from __future__ import annotations

import codecs
import contextlib
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator, Literal, Optional

DATA_PREFIX = "data: "
EVENT_PREFIX = "event: "

EventType = Literal["chunk", "done", "error", "end"]


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """
    A single event parsed from the stream.

    `data` is the payload for "chunk", the accumulated text for "done", the error
    message for "error" (None when no data line was found in the same batch) and
    None for "end".
    """

    type: EventType
    data: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StreamCallbacks:
    """
    Optional handlers invoked while a stream is decoded.
    A handler left as None means the event type is ignored.
    """

    on_chunk: Optional[Callable[[str], object]] = None
    on_done: Optional[Callable[[str], object]] = None
    on_error: Optional[Callable[[str], object]] = None
    on_end: Optional[Callable[[], object]] = None

    def dispatch(self, event: StreamEvent) -> None:
        if event.type == "chunk":
            if self.on_chunk is not None:
                self.on_chunk(event.data or "")
        elif event.type == "done":
            if self.on_done is not None:
                self.on_done(event.data or "")
        elif event.type == "error":
            if event.data is not None and self.on_error is not None:
                self.on_error(event.data)
        elif event.type == "end":
            if self.on_end is not None:
                self.on_end()


class StreamDecoder:
    """
    Buffers raw byte chunks and turns complete lines into StreamEvent objects.

    One instance belongs to exactly one stream. After an `end` event the decoder
    is closed and further chunks are ignored.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._parts: list[str] = []
        self.ended = False

    @property
    def buffer(self) -> str:
        """Pending text not yet terminated by a newline."""
        return self._buffer

    @property
    def text(self) -> str:
        """Concatenation of every data payload seen so far, in arrival order."""
        return "".join(self._parts)

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """
        Decode one chunk and return the events of every line it completes.

        Args:
            chunk: Raw bytes as delivered by the transport.

        Returns:
            Events in parse order. Parsing stops right after an `end` event.
        """
        if self.ended:
            return []

        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        # El último fragmento nunca se procesa como línea.
        self._buffer = lines.pop()

        events: list[StreamEvent] = []
        for line in lines:
            if line.startswith(DATA_PREFIX):
                payload = line[len(DATA_PREFIX):]
                self._parts.append(payload)
                events.append(StreamEvent("chunk", payload))
            elif line.startswith(EVENT_PREFIX):
                name = line[len(EVENT_PREFIX):]
                if name == "done":
                    events.append(StreamEvent("done", self.text))
                elif name == "error":
                    # Only the lines of this batch are searched, never later chunks.
                    message = next(
                        (ln[len(DATA_PREFIX):] for ln in lines if ln.startswith(DATA_PREFIX)),
                        None,
                    )
                    events.append(StreamEvent("error", message))
                elif name == "end":
                    self.ended = True
                    events.append(StreamEvent("end"))
                    break
                else:
                    logging.debug("Ignoring unknown stream event %r", name)

        return events


@contextlib.contextmanager
def _released(chunks: Iterable[bytes]) -> Iterator[Iterator[bytes]]:
    source = iter(chunks)
    try:
        yield source
    finally:
        close = getattr(source, "close", None)
        if callable(close):
            close()


@contextlib.asynccontextmanager
async def _areleased(chunks: AsyncIterable[bytes]) -> AsyncIterator[AsyncIterator[bytes]]:
    source = aiter(chunks)
    try:
        yield source
    finally:
        aclose = getattr(source, "aclose", None)
        if callable(aclose):
            await aclose()


def iter_stream_events(chunks: Iterable[bytes]) -> Iterator[StreamEvent]:
    """
    Yield events parsed from a sequence of byte chunks until `end` or exhaustion.
    The chunk source is closed once the generator finishes or is closed.
    """
    decoder = StreamDecoder()
    with _released(chunks) as source:
        for chunk in source:
            yield from decoder.feed(chunk)
            if decoder.ended:
                return


async def aiter_stream_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    decoder = StreamDecoder()
    async with _areleased(chunks) as source:
        async for chunk in source:
            for event in decoder.feed(chunk):
                yield event
            if decoder.ended:
                return


def decode_stream(chunks: Iterable[bytes], callbacks: StreamCallbacks | None = None) -> str:
    """
    Decode a chunked event stream, dispatching every event to `callbacks`.

    Args:
        chunks: Byte chunks in arrival order (e.g. httpx `Response.iter_bytes()`).
        callbacks: Optional handlers; missing handlers ignore their event type.

    Returns:
        The accumulated text once an `end` event is seen or the source is exhausted.
    """
    callbacks = callbacks or StreamCallbacks()
    decoder = StreamDecoder()
    with _released(chunks) as source:
        for chunk in source:
            for event in decoder.feed(chunk):
                callbacks.dispatch(event)
            if decoder.ended:
                break
    return decoder.text


async def adecode_stream(chunks: AsyncIterable[bytes], callbacks: StreamCallbacks | None = None) -> str:
    """Async version of decode_stream()."""
    callbacks = callbacks or StreamCallbacks()
    decoder = StreamDecoder()
    async with _areleased(chunks) as source:
        async for chunk in source:
            for event in decoder.feed(chunk):
                callbacks.dispatch(event)
            if decoder.ended:
                break
    return decoder.text
