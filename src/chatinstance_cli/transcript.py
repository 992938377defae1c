from __future__ import annotations

import math
from collections.abc import Iterable

from loguru import logger

from chatinstance_cli.message import Message, Role

_CHARS_PER_TOKEN = 4


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Rough token count: total content length divided by 4, rounded up."""
    total_chars = sum(len(m.content) for m in messages)
    return math.ceil(total_chars / _CHARS_PER_TOKEN)


class Transcript:
    """Ordered conversation history sent as context on every request.

    Holds at most one system message, always at position 0. Assistant
    messages are only appended once complete, never while streaming.
    """

    def __init__(self, system_prompt: str | None = None):
        self._system_message = Message.system(system_prompt) if system_prompt else None
        self._messages: list[Message] = []
        if self._system_message is not None:
            self._messages.append(self._system_message)

    @property
    def system_message(self) -> Message | None:
        return self._system_message

    def append(self, message: Message) -> None:
        if message.role is Role.SYSTEM:
            raise ValueError("Transcript already has its system prompt; system messages cannot be appended")
        self._messages.append(message)

    def clear(self, preserve_system_prompt: bool = True) -> None:
        removed = len(self._messages)
        self._messages = []
        if preserve_system_prompt and self._system_message is not None:
            self._messages.append(self._system_message)
        logger.debug(f"Transcript cleared: removed {removed} message(s), kept {len(self._messages)}")

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    def estimate_tokens(self) -> int:
        return estimate_tokens(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))
