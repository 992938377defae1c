from __future__ import annotations

import json
from datetime import datetime, timezone

from chatinstance_cli.message import Message
from chatinstance_cli.session_config import SessionConfig
from chatinstance_cli.streaming import DeltaAggregator, FrameDecoder
from chatinstance_cli.terminal import Terminal
from chatinstance_cli.transport import ChatTransport

OUTPUT_FORMATS = ("plain", "json")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def ask(
    question: str,
    config: SessionConfig,
    transport: ChatTransport,
    *,
    output_format: str = "plain",
    terminal: Terminal | None = None,
) -> str:
    """Send a single question and print the answer. Returns the answer text."""
    terminal = terminal or Terminal()
    messages: list[Message] = []
    if config.system_prompt:
        messages.append(Message.system(config.system_prompt))
    messages.append(Message.user(question))

    if config.streaming:
        if output_format != "plain":
            terminal.line(f"{config.provider} ({config.model}):")
        decoder = FrameDecoder()
        aggregator = DeltaAggregator(terminal.write)
        chunks = transport.send_streaming(config.provider, config.model, messages, config.system_prompt)
        try:
            answer = await aggregator.consume(decoder.decode(chunks))
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        terminal.line()
        if output_format == "json":
            terminal.line(
                json.dumps(
                    {
                        "provider": config.provider,
                        "model": config.model,
                        "question": question,
                        "response": answer,
                        "timestamp": _timestamp(),
                    },
                    indent=2,
                )
            )
        return answer

    with terminal.spinner(" Getting response..."):
        response = await transport.send(config.provider, config.model, messages, config.system_prompt)
    answer = response.content
    if output_format == "json":
        terminal.line(
            json.dumps(
                {
                    "id": response.id,
                    "provider": response.provider,
                    "model": response.model,
                    "question": question,
                    "response": answer,
                    "usage": response.to_dict()["usage"],
                    "timestamp": _timestamp(),
                },
                indent=2,
            )
        )
    else:
        terminal.line(answer)
    return answer
