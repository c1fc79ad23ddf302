from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Union

from loguru import logger

from chat_stream_client.errors import EventParseError


@dataclass(frozen=True)
class StatusEvent:
    text: str


@dataclass(frozen=True)
class ChunkEvent:
    delta: str


@dataclass(frozen=True)
class DoneEvent:
    thread_id: str | None = None


@dataclass(frozen=True)
class ResultEvent:
    role: str
    content: str
    thread_id: str | None = None


StreamEvent = Union[StatusEvent, ChunkEvent, DoneEvent, ResultEvent]


def _optional_thread_id(data: dict) -> str | None:
    value = data.get("thread_id")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _required_str(data: dict, key: str, line: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise EventParseError(f"{data.get('type')!r} event requires a string {key!r}", line)
    return value


def parse_event(line: str) -> StreamEvent | None:
    """Parse one line of the chat stream.

    Returns None for blank lines and for events of a type this client does not
    handle. Raises EventParseError when the line is not a well-formed event.
    """
    text = line.strip()
    if not text:
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as ex:
        raise EventParseError(f"Invalid JSON: {ex.msg}", line) from ex

    if not isinstance(data, dict):
        raise EventParseError("Event is not a JSON object", line)

    event_type = data.get("type")
    if event_type == "status":
        return StatusEvent(text=str(data.get("status") or ""))
    if event_type == "chunk":
        return ChunkEvent(delta=_required_str(data, "chunk", line))
    if event_type == "done":
        return DoneEvent(thread_id=_optional_thread_id(data))
    if event_type == "result":
        message = data.get("message")
        if not isinstance(message, dict):
            raise EventParseError("'result' event requires a 'message' object", line)
        content = message.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            raise EventParseError("'result' message content must be a string", line)
        return ResultEvent(
            role=str(message.get("role") or "assistant"),
            content=content,
            thread_id=_optional_thread_id(data),
        )

    logger.debug(f"Ignoring stream event of unknown type: {event_type!r}")
    return None
