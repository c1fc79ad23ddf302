from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    session_cookie: str | None


@dataclass
class AppConfig:
    api_url: str
    backend_url: str
    model: str
    save_debounce_seconds: float
    title_max_chars: int
    media_indicator_timeout_seconds: float
    deep_research_max_results: int
    request_timeout_seconds: float
    log_level: str
    log_consumers: list | None
    http_log_level: str


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _strip_url(value: object, default: str) -> str:
    text = str(value or "").strip()
    return (text or default).rstrip("/")


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        api_url=_strip_url(config.get("ApiUrl"), "http://localhost:8000"),
        backend_url=_strip_url(config.get("BackendUrl"), "http://localhost:5000"),
        model=str(config.get("Model", "gemini-1.5-flash")).strip() or "gemini-1.5-flash",
        save_debounce_seconds=max(0.0, float(config.get("SaveDebounceSeconds", 2.0))),
        title_max_chars=max(1, int(config.get("TitleMaxChars", 30))),
        media_indicator_timeout_seconds=max(0.0, float(config.get("MediaIndicatorTimeoutSeconds", 30))),
        deep_research_max_results=max(1, int(config.get("DeepResearchMaxResults", 5))),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 60)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
        http_log_level=config.get("HttpLogLevel", "WARNING"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        session_cookie=os.environ.get("CHAT_SESSION_COOKIE") or None,
    )
