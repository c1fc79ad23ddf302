from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

DEFAULT_TITLE = "New Chat"
DEFAULT_TITLE_MAX_CHARS = 30

_PLACEHOLDER_PREFIXES = ("temp_", "new_")


def new_placeholder_id() -> str:
    return f"temp_{int(time.time() * 1000)}"


def is_placeholder_id(thread_id: str | None) -> bool:
    """True for identities minted locally; the store never issues these."""
    return thread_id is None or thread_id.startswith(_PLACEHOLDER_PREFIXES)


def derive_title(text: str, max_chars: int = DEFAULT_TITLE_MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class MutationSource(str, Enum):
    """Where the session's latest unsaved change came from."""

    EXCHANGE = "exchange"
    LOAD = "load"
    SYNCED = "synced"


@dataclass
class Message:
    role: str
    content: str
    is_temporary: bool = False
    id: str = field(default_factory=lambda: uuid4().hex)

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationSession:
    thread_id: str | None = None
    title: str = DEFAULT_TITLE
    messages: list[Message] = field(default_factory=list)
    last_remote_update: str | None = None
    mutation_source: MutationSource = MutationSource.EXCHANGE
    revision: int = 0

    @classmethod
    def new(cls) -> ConversationSession:
        return cls(thread_id=new_placeholder_id())

    @classmethod
    def from_remote(
        cls,
        thread_id: str,
        title: str,
        messages: list[dict],
        last_updated: str | None,
    ) -> ConversationSession:
        return cls(
            thread_id=thread_id,
            title=title or DEFAULT_TITLE,
            messages=[
                Message(role=str(m.get("role", "assistant")), content=str(m.get("content") or ""))
                for m in messages
            ],
            last_remote_update=last_updated,
            mutation_source=MutationSource.LOAD,
        )

    @property
    def has_remote_identity(self) -> bool:
        return not is_placeholder_id(self.thread_id)

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_TITLE

    def assign_thread_id(self, thread_id: str | None) -> bool:
        """Adopt ``thread_id`` unless the session already has a remote identity."""
        if not thread_id or self.has_remote_identity:
            return False
        self.thread_id = thread_id
        return True

    def append_user_message(self, content: str) -> Message:
        message = Message(role="user", content=content)
        self.messages.append(message)
        self.mutation_source = MutationSource.EXCHANGE
        self.revision += 1
        return message

    def temporary_message(self) -> Message | None:
        if self.messages and self.messages[-1].is_temporary:
            return self.messages[-1]
        return None

    def committed_messages(self) -> list[Message]:
        return [m for m in self.messages if not m.is_temporary]

    def first_user_message(self) -> Message | None:
        return next((m for m in self.messages if m.role == "user"), None)

    def ensure_title(self, max_chars: int = DEFAULT_TITLE_MAX_CHARS) -> str:
        """Derive the title from the first user message, once."""
        if self.has_default_title:
            first = self.first_user_message()
            if first is not None:
                self.title = derive_title(first.content, max_chars)
        return self.title
