from __future__ import annotations

from collections.abc import Callable
from typing import assert_never

from loguru import logger

from chatinstance_cli.commands.dispatcher import (
    HELP_LINES,
    ChatTurn,
    ClearHistory,
    Command,
    CommandDispatcher,
    Exit,
    Help,
    SessionState,
    ShowTokens,
    SwitchProvider,
    UnknownCommand,
)
from chatinstance_cli.errors import (
    ChatInstanceError,
    FatalInputError,
    UnknownCommandError,
    ValidationError,
)
from chatinstance_cli.message import Message
from chatinstance_cli.session_config import SessionConfig
from chatinstance_cli.streaming import DeltaAggregator, FrameDecoder
from chatinstance_cli.terminal import Terminal
from chatinstance_cli.transcript import Transcript
from chatinstance_cli.transport import ChatTransport

VERSION = "1.0.0"


class ChatSession:
    """Interactive chat loop: read a line, dispatch it, run the turn, repeat.

    A turn only reaches the transcript once the reply is complete. If the
    call fails halfway through a stream, whatever was already printed stays
    on screen but nothing is committed.
    """

    _USER_PROMPT = "You: "
    _ASSISTANT_PREFIX = "AI: "

    def __init__(
        self,
        config: SessionConfig,
        transport: ChatTransport,
        *,
        terminal: Terminal | None = None,
        read_line: Callable[[str], str] | None = None,
        log_descriptions: list[str] | None = None,
    ):
        self._config = config
        self._log_descriptions = list(log_descriptions or [])
        self._transport = transport
        self._terminal = terminal or Terminal()
        self._read_line = read_line or input
        self._provider = config.provider
        self._model = config.model
        self._transcript = Transcript(config.system_prompt)
        self._dispatcher = CommandDispatcher()

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model

    @property
    def state(self) -> SessionState:
        return self._dispatcher.state

    def print_banner(self) -> None:
        self._terminal.line(f"ChatInstance CLI v{VERSION}")
        self._terminal.line(f"Connected to {self._provider} ({self._model})")
        if self._log_descriptions:
            self._terminal.line(f"Logging: {', '.join(self._log_descriptions)}")
        self._terminal.line("Type /help for commands, /exit to quit")
        self._terminal.line()

    async def run(self) -> SessionState:
        """Run until ``/exit`` or the input source closes. Returns the final state."""
        self.print_banner()
        while self._dispatcher.state is not SessionState.TERMINAL:
            try:
                line = self._read_input()
            except FatalInputError as ex:
                logger.debug(f"Input closed: {ex}")
                self._dispatcher.terminate()
                self._terminal.line()
                self._terminal.line("Goodbye!")
                break

            try:
                await self.handle_line(line)
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
                self._terminal.error(str(ex))
        return self._dispatcher.state

    def _read_input(self) -> str:
        try:
            return self._read_line(self._USER_PROMPT)
        except (EOFError, KeyboardInterrupt) as ex:
            raise FatalInputError("Input stream closed") from ex

    async def handle_line(self, line: str) -> None:
        try:
            command = self._dispatcher.dispatch(line)
        except ValidationError as ex:
            self._terminal.line(str(ex))
            return

        try:
            await self._execute(command)
        except UnknownCommandError as ex:
            logger.debug(f"Unknown command: {ex.command!r}")
            self._terminal.line(str(ex))
        finally:
            self._dispatcher.complete()

    async def _execute(self, command: Command) -> None:
        match command:
            case Help():
                self._print_help()
            case Exit():
                self._terminal.line("Goodbye!")
            case ClearHistory():
                self._transcript.clear(preserve_system_prompt=True)
                self._terminal.line("Conversation cleared.")
            case SwitchProvider(name=name):
                self._switch_provider(name)
            case ShowTokens():
                self._terminal.line(f"Estimated tokens used: {self._transcript.estimate_tokens()}")
            case UnknownCommand(raw=raw):
                raise UnknownCommandError(raw)
            case ChatTurn(text=text):
                await self._chat_turn(text)
            case _:
                assert_never(command)

    def _print_help(self) -> None:
        self._terminal.line()
        self._terminal.line("Chat Commands:")
        width = max(len(usage) for usage, _ in HELP_LINES) + 1
        for usage, description in HELP_LINES:
            self._terminal.line(f"{usage:<{width}}- {description}")
        self._terminal.line()

    def _switch_provider(self, name: str) -> None:
        if not name:
            self._terminal.line("Usage: /provider <provider>")
            return
        logger.info(f"Provider switched: {self._provider} -> {name}")
        self._provider = name
        self._terminal.line(f"Switched to {name}")

    async def _chat_turn(self, text: str) -> None:
        self._transcript.append(Message.user(text))
        messages = self._transcript.snapshot()

        try:
            if self._config.streaming:
                reply = await self._stream_reply(messages)
            else:
                reply = await self._await_reply(messages)
        except ChatInstanceError as ex:
            logger.warning(f"Turn abandoned ({type(ex).__name__}): {ex}")
            self._terminal.error(str(ex))
            self._terminal.line()
            return

        self._transcript.append(Message.assistant(reply))
        self._terminal.line()

    async def _stream_reply(self, messages: list[Message]) -> str:
        decoder = FrameDecoder()
        aggregator = DeltaAggregator(self._terminal.write)

        self._terminal.write(self._ASSISTANT_PREFIX)
        chunks = self._transport.send_streaming(
            self._provider,
            self._model,
            messages,
            self._config.system_prompt,
        )
        try:
            reply = await aggregator.consume(decoder.decode(chunks))
        except BaseException:
            self._terminal.line()
            raise
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        self._terminal.line()
        if decoder.skipped_records:
            logger.debug(f"Skipped {decoder.skipped_records} malformed stream record(s)")
        if aggregator.usage and "total_tokens" in aggregator.usage:
            self._terminal.line(f"\nTokens: {aggregator.usage['total_tokens']}")
        return reply

    async def _await_reply(self, messages: list[Message]) -> str:
        with self._terminal.spinner():
            response = await self._transport.send(
                self._provider,
                self._model,
                messages,
                self._config.system_prompt,
            )
        content = response.content
        self._terminal.line(f"{self._ASSISTANT_PREFIX}{content}")
        self._terminal.line(f"\nTokens: {response.usage.total_tokens}")
        return content


async def run_session(
    initial_system_prompt: str | None,
    provider_default: str,
    model_default: str,
    streaming_enabled: bool,
    *,
    transport: ChatTransport,
    terminal: Terminal | None = None,
    read_line: Callable[[str], str] | None = None,
    log_descriptions: list[str] | None = None,
) -> SessionState:
    """Blocking entry point for an interactive session."""
    config = SessionConfig(
        provider=provider_default,
        model=model_default,
        streaming=streaming_enabled,
        system_prompt=initial_system_prompt,
    )
    session = ChatSession(
        config,
        transport,
        terminal=terminal,
        read_line=read_line,
        log_descriptions=log_descriptions,
    )
    return await session.run()
