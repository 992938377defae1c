from __future__ import annotations

from collections.abc import AsyncIterable, Callable
from typing import Any

from chatinstance_cli.streaming.frame_decoder import StreamEventRecord


def extract_fragment(data: dict[str, Any]) -> str | None:
    """Return ``choices[0].delta.content`` when the record carries text."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str) or not content:
        return None
    return content


def extract_finish_reason(data: dict[str, Any]) -> str | None:
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        reason = choices[0].get("finish_reason")
        if isinstance(reason, str):
            return reason
    return None


class DeltaAggregator:
    """Folds stream records into the assistant reply.

    Each fragment goes to ``sink`` before it is added to the accumulated text,
    so what the user saw and what gets committed are the same string.
    """

    def __init__(self, sink: Callable[[str], None]):
        self._sink = sink
        self._parts: list[str] = []
        self._fragment_count = 0
        self.finish_reason: str | None = None
        self.usage: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def fragment_count(self) -> int:
        return self._fragment_count

    def add(self, record: StreamEventRecord) -> str | None:
        reason = extract_finish_reason(record.data)
        if reason is not None:
            self.finish_reason = reason
        usage = record.data.get("usage")
        if isinstance(usage, dict):
            self.usage = usage

        fragment = extract_fragment(record.data)
        if fragment is None:
            return None
        self._sink(fragment)
        self._parts.append(fragment)
        self._fragment_count += 1
        return fragment

    async def consume(self, records: AsyncIterable[StreamEventRecord]) -> str:
        async for record in records:
            self.add(record)
        return self.text
