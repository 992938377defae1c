from dataclasses import dataclass


@dataclass(frozen=True)
class SessionConfig:
    provider: str = "chatgpt"
    model: str = "gpt-4o"
    streaming: bool = False
    system_prompt: str | None = None
