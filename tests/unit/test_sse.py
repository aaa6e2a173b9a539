import pytest

from langchat_client._sse import (
    StreamCallbacks,
    StreamDecoder,
    StreamEvent,
    adecode_stream,
    aiter_stream_events,
    decode_stream,
    iter_stream_events,
)


class Recorder:
    """Records callback invocations in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_chunk=lambda text: self.calls.append(("chunk", text)),
            on_done=lambda full: self.calls.append(("done", full)),
            on_error=lambda msg: self.calls.append(("error", msg)),
            on_end=lambda: self.calls.append(("end",)),
        )


class TrackedSource:
    """Chunk iterator that counts close() calls."""

    def __init__(self, chunks, fail_after=None) -> None:
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self.read = 0
        self.closed = 0

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        if self._fail_after is not None and self.read >= self._fail_after:
            raise ConnectionError("connection reset")
        if self.read >= len(self._chunks):
            raise StopIteration
        chunk = self._chunks[self.read]
        self.read += 1
        return chunk

    def close(self) -> None:
        self.closed += 1


class AsyncTrackedSource:
    def __init__(self, chunks, fail_after=None) -> None:
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self.read = 0
        self.closed = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._fail_after is not None and self.read >= self._fail_after:
            raise ConnectionError("connection reset")
        if self.read >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self.read]
        self.read += 1
        return chunk

    async def aclose(self) -> None:
        self.closed += 1


def test_hello_world_scenario() -> None:
    rec = Recorder()

    result = decode_stream([b"data: Hello\n", b"data: World\nevent: end\n"], rec.callbacks())

    assert rec.calls == [("chunk", "Hello"), ("chunk", "World"), ("end",)]
    assert result == "HelloWorld"


def test_n_data_lines_then_end() -> None:
    payloads = [f"part-{i}" for i in range(7)]
    stream = "".join(f"data: {p}\n\n" for p in payloads) + "event: end\ndata: \n\n"
    rec = Recorder()

    result = decode_stream([stream.encode("utf-8")], rec.callbacks())

    assert rec.calls == [("chunk", p) for p in payloads] + [("end",)]
    assert result == "".join(payloads)


def test_chunk_boundary_invariance_including_multibyte_splits() -> None:
    stream = (
        "data: Hola, ¿qué tal?\n\n"
        "data: 日本語のテキスト\n\n"
        "data: emoji 🎉 done\n\n"
        "event: done\ndata: full\n\n"
        "event: end\ndata: \n\n"
    ).encode("utf-8")

    reference = Recorder()
    expected = decode_stream([stream], reference.callbacks())

    # Cortar en cada posición posible, incluidos bytes intermedios de caracteres UTF-8.
    for cut in range(1, len(stream)):
        rec = Recorder()
        result = decode_stream([stream[:cut], stream[cut:]], rec.callbacks())
        assert rec.calls == reference.calls, f"cut at byte {cut}"
        assert result == expected

    rec = Recorder()
    result = decode_stream([stream[i:i + 1] for i in range(len(stream))], rec.callbacks())
    assert rec.calls == reference.calls
    assert result == expected


def test_exhaustion_without_end_returns_accumulated_text() -> None:
    rec = Recorder()

    result = decode_stream([b"data: a\n", b"data: b\n", b"data: trailing-without-newline"], rec.callbacks())

    assert rec.calls == [("chunk", "a"), ("chunk", "b")]
    assert result == "ab"


def test_error_event_reads_data_line_from_same_chunk() -> None:
    rec = Recorder()

    decode_stream([b"event: error\ndata: chat failed: boom\n\n"], rec.callbacks())

    assert ("error", "chat failed: boom") in rec.calls
    # La línea data: sigue siendo un chunk normal.
    assert ("chunk", "chat failed: boom") in rec.calls


def test_error_event_does_not_look_at_later_chunks() -> None:
    rec = Recorder()

    decode_stream([b"event: error\n", b"data: too late\n"], rec.callbacks())

    assert rec.calls == [("chunk", "too late")]


def test_error_event_uses_first_data_line_of_the_batch() -> None:
    rec = Recorder()

    decode_stream([b"data: earlier\nevent: error\ndata: boom\n"], rec.callbacks())

    assert rec.calls == [("chunk", "earlier"), ("error", "earlier"), ("chunk", "boom")]


def test_done_passes_accumulated_text_and_keeps_reading() -> None:
    rec = Recorder()

    result = decode_stream(
        [b"data: a\ndata: b\nevent: done\n", b"data: c\n", b"event: end\n"],
        rec.callbacks(),
    )

    assert rec.calls == [("chunk", "a"), ("chunk", "b"), ("done", "ab"), ("chunk", "c"), ("end",)]
    assert result == "abc"


def test_end_stops_reading_further_chunks() -> None:
    source = TrackedSource([b"data: x\nevent: end\ndata: ignored\n", b"data: never read\n"])
    rec = Recorder()

    result = decode_stream(source, rec.callbacks())

    assert result == "x"
    assert rec.calls == [("chunk", "x"), ("end",)]
    assert source.read == 1


def test_unknown_events_and_malformed_lines_are_ignored() -> None:
    rec = Recorder()

    result = decode_stream(
        [b"event: ping\nid: 7\nretry: 10\ndata:no-space\n: comment\n\ndata: ok\n"],
        rec.callbacks(),
    )

    assert rec.calls == [("chunk", "ok")]
    assert result == "ok"


def test_missing_callbacks_are_skipped() -> None:
    result = decode_stream([b"data: a\nevent: done\nevent: error\ndata: b\nevent: end\n"], StreamCallbacks())
    assert result == "ab"

    assert decode_stream([b"data: z\n"]) == "z"


def test_payload_keeps_surrounding_whitespace() -> None:
    rec = Recorder()

    result = decode_stream([b"data:  spaced \n", b"data: \n"], rec.callbacks())

    assert rec.calls == [("chunk", " spaced "), ("chunk", "")]
    assert result == " spaced "


@pytest.mark.parametrize(
    "source",
    [
        TrackedSource([b"data: a\n", b"data: b\n"]),
        TrackedSource([b"data: a\nevent: end\n", b"data: b\n"]),
    ],
)
def test_source_released_once_on_normal_exit(source) -> None:
    decode_stream(source)

    assert source.closed == 1


def test_source_released_once_on_transport_error() -> None:
    source = TrackedSource([b"data: a\n", b"data: b\n"], fail_after=1)

    with pytest.raises(ConnectionError):
        decode_stream(source)

    assert source.closed == 1


def test_source_released_once_when_callback_raises() -> None:
    source = TrackedSource([b"data: a\n"])

    def boom(_text: str) -> None:
        raise RuntimeError("ui failed")

    with pytest.raises(RuntimeError):
        decode_stream(source, StreamCallbacks(on_chunk=boom))

    assert source.closed == 1


def test_decoder_feed_returns_events_and_holds_partial_line() -> None:
    decoder = StreamDecoder()

    assert decoder.feed(b"data: Hel") == []
    assert decoder.buffer == "data: Hel"

    events = decoder.feed(b"lo\nevent: done\nevent: end\ndata: after\n")

    assert events == [
        StreamEvent("chunk", "Hello"),
        StreamEvent("done", "Hello"),
        StreamEvent("end"),
    ]
    assert decoder.ended is True
    assert decoder.text == "Hello"
    assert decoder.feed(b"data: more\n") == []


def test_decoder_holds_split_multibyte_sequence() -> None:
    decoder = StreamDecoder()
    encoded = "data: ñ\n".encode("utf-8")

    # "ñ" ocupa dos bytes; se corta justo entre ambos.
    split = encoded.index(b"\xc3") + 1
    assert decoder.feed(encoded[:split]) == []
    assert decoder.feed(encoded[split:]) == [StreamEvent("chunk", "ñ")]


def test_error_event_without_data_has_no_message() -> None:
    decoder = StreamDecoder()

    assert decoder.feed(b"event: error\n") == [StreamEvent("error", None)]


def test_iter_stream_events_stops_after_end_and_closes_source() -> None:
    source = TrackedSource([b"data: a\nevent: end\n", b"data: b\n"])

    events = list(iter_stream_events(source))

    assert events == [StreamEvent("chunk", "a"), StreamEvent("end")]
    assert source.read == 1
    assert source.closed == 1


def test_iter_stream_events_closed_early_releases_source() -> None:
    source = TrackedSource([b"data: a\n", b"data: b\n"])

    gen = iter_stream_events(source)
    assert next(gen) == StreamEvent("chunk", "a")
    gen.close()

    assert source.closed == 1


def test_concurrent_decodes_do_not_share_state() -> None:
    first = StreamDecoder()
    second = StreamDecoder()

    first.feed(b"data: one\ndata: par")
    second.feed(b"data: two\n")

    assert first.text == "one"
    assert first.buffer == "data: par"
    assert second.text == "two"
    assert second.buffer == ""


@pytest.mark.asyncio
async def test_adecode_stream_scenario_and_release() -> None:
    source = AsyncTrackedSource([b"data: Hello\n", b"data: World\nevent: end\n", b"data: unread\n"])
    rec = Recorder()

    result = await adecode_stream(source, rec.callbacks())

    assert result == "HelloWorld"
    assert rec.calls == [("chunk", "Hello"), ("chunk", "World"), ("end",)]
    assert source.read == 2
    assert source.closed == 1


@pytest.mark.asyncio
async def test_adecode_stream_releases_on_error() -> None:
    source = AsyncTrackedSource([b"data: a\n"], fail_after=1)

    with pytest.raises(ConnectionError):
        await adecode_stream(source)

    assert source.closed == 1


@pytest.mark.asyncio
async def test_adecode_stream_releases_when_callback_raises() -> None:
    source = AsyncTrackedSource([b"data: a\n", b"data: b\n"])

    def boom(_text: str) -> None:
        raise RuntimeError("ui failed")

    with pytest.raises(RuntimeError):
        await adecode_stream(source, StreamCallbacks(on_chunk=boom))

    assert source.read == 1
    assert source.closed == 1


@pytest.mark.asyncio
async def test_aiter_stream_events_yields_until_end() -> None:
    source = AsyncTrackedSource([b"data: a\nevent: done\n", b"event: end\ndata: b\n"])

    events = [event async for event in aiter_stream_events(source)]

    assert events == [StreamEvent("chunk", "a"), StreamEvent("done", "a"), StreamEvent("end")]
    assert source.closed == 1
