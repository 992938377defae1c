"""Incremental decoder for ``text/event-stream`` chat responses.

The transport hands over chunks exactly as they come off the socket, so a
single ``data:`` line can be split anywhere (inside the prefix, inside the
JSON payload, or right on the newline) and one chunk can hold several lines.
:class:`FrameDecoder` keeps the unterminated tail of the last chunk and only
ever looks at complete lines.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from chatinstance_cli.errors import StreamDecodeError, StreamTransportError, TransportError

DATA_PREFIX = "data: "
EVENT_PREFIX = "event:"
DONE_SENTINEL = "[DONE]"
DEFAULT_EVENT_TYPE = "message"


@dataclass(frozen=True)
class StreamEventRecord:
    event_type: str
    raw_payload: str
    data: dict[str, Any] = field(default_factory=dict, compare=False)


def is_done_sentinel(payload: str) -> bool:
    return payload.strip().upper() == DONE_SENTINEL


def parse_payload(payload: str) -> dict[str, Any]:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as ex:
        raise StreamDecodeError(f"Malformed stream payload: {payload[:200]!r}") from ex
    if not isinstance(data, dict):
        raise StreamDecodeError(f"Stream payload is not an object: {payload[:200]!r}")
    return data


class FrameDecoder:
    """Turns arbitrarily chunked stream input into :class:`StreamEventRecord` objects.

    One decoder serves exactly one response stream. Create a new one per call.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._event_type = DEFAULT_EVENT_TYPE
        self._done = False
        self._skipped = 0

    @property
    def done(self) -> bool:
        """True once the ``[DONE]`` sentinel has been seen."""
        return self._done

    @property
    def skipped_records(self) -> int:
        return self._skipped

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def feed(self, chunk: bytes | str) -> list[StreamEventRecord]:
        """Consume one chunk and return the records completed by it."""
        if self._done:
            return []

        text = self._text_decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        lines = (self._pending + text).split("\n")
        self._pending = lines.pop()

        records: list[StreamEventRecord] = []
        for line in lines:
            record = self._handle_line(line)
            if record is not None:
                records.append(record)
            if self._done:
                self._pending = ""
                break
        return records

    def finish(self) -> list[StreamEventRecord]:
        """Flush the trailing unterminated line at normal end of stream."""
        if self._done:
            return []
        tail = self._pending + self._text_decoder.decode(b"", final=True)
        self._pending = ""
        if not tail:
            return []
        record = self._handle_line(tail)
        return [record] if record is not None else []

    def discard(self) -> None:
        """Drop any partial line. Used when the stream fails."""
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} chars of incomplete stream line")
        self._pending = ""
        self._text_decoder.reset()

    async def decode(self, chunks: AsyncIterable[bytes | str]) -> AsyncIterator[StreamEventRecord]:
        """Decode a whole chunk stream, stopping at the sentinel."""
        try:
            async for chunk in chunks:
                for record in self.feed(chunk):
                    yield record
                if self._done:
                    logger.debug("Stream sentinel reached; ignoring remaining input")
                    return
        except TransportError:
            self.discard()
            raise
        except Exception as ex:
            self.discard()
            raise StreamTransportError(f"Stream interrupted: {ex}") from ex

        for record in self.finish():
            yield record

    def _handle_line(self, line: str) -> StreamEventRecord | None:
        if line.endswith("\r"):
            line = line[:-1]

        if not line:
            self._event_type = DEFAULT_EVENT_TYPE
            return None

        if line.startswith(EVENT_PREFIX):
            self._event_type = line[len(EVENT_PREFIX):].strip() or DEFAULT_EVENT_TYPE
            return None

        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if is_done_sentinel(payload):
            self._done = True
            return None

        try:
            data = parse_payload(payload)
        except StreamDecodeError as ex:
            self._skipped += 1
            logger.debug(str(ex))
            return None

        return StreamEventRecord(event_type=self._event_type, raw_payload=payload, data=data)
