from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chatinstance_cli.errors import CallError
from chatinstance_cli.message import Message, Role


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Choice:
    role: str
    content: str
    finish_reason: str | None = None


@dataclass
class ChatResponse:
    id: str
    provider: str
    model: str
    created: int
    choices: list[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    @property
    def content(self) -> str:
        if not self.choices:
            raise CallError("Response contained no choices")
        return self.choices[0].content

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatResponse:
        try:
            return cls._parse(data)
        except (TypeError, ValueError, AttributeError) as ex:
            raise CallError(f"Malformed response body: {ex}") from ex

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> ChatResponse:
        choices = []
        for raw in data.get("choices") or []:
            message = raw.get("message") or {}
            choices.append(
                Choice(
                    role=message.get("role", "assistant"),
                    content=message.get("content") or "",
                    finish_reason=raw.get("finish_reason"),
                )
            )
        raw_usage = data.get("usage") or {}
        return cls(
            id=str(data.get("id", "")),
            provider=str(data.get("provider", "")),
            model=str(data.get("model", "")),
            created=int(data.get("created") or 0),
            choices=choices,
            usage=Usage(
                prompt_tokens=int(raw_usage.get("prompt_tokens") or 0),
                completion_tokens=int(raw_usage.get("completion_tokens") or 0),
                total_tokens=int(raw_usage.get("total_tokens") or 0),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "model": self.model,
            "created": self.created,
            "choices": [
                {
                    "message": {"role": c.role, "content": c.content},
                    "finish_reason": c.finish_reason,
                }
                for c in self.choices
            ],
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
        }


def build_chat_request(
    provider: str,
    model: str,
    messages: list[Message],
    *,
    stream: bool,
    system_prompt: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "provider": provider,
        "model": model,
        "messages": [m.to_dict() for m in messages],
        "stream": stream,
    }
    if temperature is not None:
        body["temperature"] = temperature
    if max_tokens is not None:
        body["max_tokens"] = max_tokens
    # The system prompt normally travels as the first message.
    if system_prompt and not any(m.role is Role.SYSTEM for m in messages):
        body["system_prompt"] = system_prompt
    return body
