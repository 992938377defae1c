from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from chatinstance_cli.transport import DEFAULT_API_URL


@dataclass
class RuntimeEnv:
    api_key: str
    api_url: str | None


@dataclass
class AppConfig:
    api_url: str
    default_provider: str
    default_model: str
    max_tokens: int
    temperature: float
    stream_response: bool
    request_timeout_seconds: float
    max_retries: int
    system_prompt: str | None
    log_level: str
    log_consumers: list | None


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        api_url=str(config.get("ApiUrl", DEFAULT_API_URL)),
        default_provider=str(config.get("DefaultProvider", "chatgpt")).strip().lower(),
        default_model=str(config.get("DefaultModel", "gpt-4o")),
        max_tokens=int(config.get("MaxTokens", 2000)),
        temperature=float(config.get("Temperature", 0.7)),
        stream_response=_to_bool(config.get("StreamResponse", False), default=False),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 30)),
        max_retries=int(config.get("MaxRetries", 3)),
        system_prompt=str(config.get("SystemPrompt", "")).strip() or None,
        log_level=str(config.get("LogLevel", "INFO")).upper(),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        api_key=os.environ.get("CHATINSTANCE_API_KEY", ""),
        api_url=os.environ.get("CHATINSTANCE_API_URL") or None,
    )
