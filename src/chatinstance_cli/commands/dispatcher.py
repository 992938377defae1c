from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chatinstance_cli.errors import ValidationError

COMMAND_PREFIX = "/"


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Exit:
    pass


@dataclass(frozen=True)
class ClearHistory:
    pass


@dataclass(frozen=True)
class SwitchProvider:
    name: str


@dataclass(frozen=True)
class ShowTokens:
    pass


@dataclass(frozen=True)
class UnknownCommand:
    raw: str


@dataclass(frozen=True)
class ChatTurn:
    text: str


Command = Help | Exit | ClearHistory | SwitchProvider | ShowTokens | UnknownCommand | ChatTurn


class SessionState(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    TERMINAL = "terminal"


HELP_LINES = [
    ("/help", "Show this help"),
    ("/exit", "Exit chat session"),
    ("/quit", "Exit chat session"),
    ("/clear", "Clear conversation"),
    ("/provider <name>", "Switch AI provider"),
    ("/tokens", "Show token usage"),
]


def parse_command(line: str) -> Command:
    """Classify one non-empty input line. Pure; no state is touched."""
    trimmed = line.strip()
    if not trimmed.startswith(COMMAND_PREFIX):
        return ChatTurn(trimmed)

    token, _, remainder = trimmed[len(COMMAND_PREFIX):].partition(" ")
    name = token.lower()
    argument = remainder.strip()

    if name == "help":
        return Help()
    if name in ("exit", "quit"):
        return Exit()
    if name == "clear":
        return ClearHistory()
    if name == "provider":
        return SwitchProvider(argument.split(" ", 1)[0] if argument else "")
    if name == "tokens":
        return ShowTokens()
    return UnknownCommand(token)


class CommandDispatcher:
    """Two-state input router: Idle while waiting for a line, Processing while
    a command or chat round-trip runs. ``Exit`` moves it to Terminal for good.
    """

    def __init__(self) -> None:
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, line: str) -> Command:
        if self._state is SessionState.TERMINAL:
            raise RuntimeError("Session has ended; no further input is accepted")
        if self._state is SessionState.PROCESSING:
            raise RuntimeError("Previous input is still being processed")
        if not line or not line.strip():
            raise ValidationError("Please enter a message")

        command = parse_command(line)
        if isinstance(command, Exit):
            self._state = SessionState.TERMINAL
        else:
            self._state = SessionState.PROCESSING
        return command

    def complete(self) -> None:
        """Return to Idle once the dispatched command has been handled."""
        if self._state is SessionState.PROCESSING:
            self._state = SessionState.IDLE

    def terminate(self) -> None:
        self._state = SessionState.TERMINAL
