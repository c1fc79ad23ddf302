from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, replace
from typing import Protocol

from loguru import logger

from chat_stream_client.backend.chat_api import ChatRequest
from chat_stream_client.backend.store import ConversationRecord
from chat_stream_client.conversation.models import ConversationSession, Message
from chat_stream_client.conversation.persistence import PersistenceCoordinator
from chat_stream_client.conversation.state_machine import (
    RESEARCH_PLACEHOLDER,
    ExchangeToken,
    MessageStateMachine,
)
from chat_stream_client.errors import EventParseError, RenameNotAllowedError, StoreError, StreamTransportError
from chat_stream_client.media_intent import MediaIntent, classify
from chat_stream_client.stream.decoder import iter_lines
from chat_stream_client.stream.events import DoneEvent, parse_event

_IMAGE_FILE = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


class ChatStream(Protocol):
    def stream(self, request: ChatRequest) -> AsyncGenerator[bytes, None]: ...


class ConversationReader(Protocol):
    async def fetch(self, thread_id: str) -> ConversationRecord: ...
    async def list_conversations(self) -> dict[str, list[ConversationRecord]]: ...


@dataclass(frozen=True)
class SessionSnapshot:
    thread_id: str | None
    title: str
    messages: tuple[Message, ...]
    status_text: str
    is_loading: bool
    generating_media: MediaIntent
    last_media_kind: MediaIntent


def attach_file(content: str, file_url: str) -> str:
    if _IMAGE_FILE.search(file_url):
        return f"{content}\n\n![Uploaded Image]({file_url})"
    return f"{content}\n\n[Uploaded File]({file_url})"


class ConversationClient:
    def __init__(
        self,
        *,
        chat_api: ChatStream,
        store: ConversationReader,
        persistence: PersistenceCoordinator,
        model: str,
        deep_research_max_results: int = 5,
        media_indicator_timeout_seconds: float = 30.0,
        on_update: Callable[[SessionSnapshot], None] | None = None,
    ):
        self._chat_api = chat_api
        self._store = store
        self._persistence = persistence
        self._deep_research_max_results = deep_research_max_results
        self._media_indicator_timeout_seconds = media_indicator_timeout_seconds
        self._on_update = on_update
        self._machine = MessageStateMachine(ConversationSession.new(), on_committed=persistence.request_save)
        self._exchange_task: asyncio.Task | None = None
        self._media_timer: asyncio.Task | None = None
        self._is_loading_chat = False
        self.model = model

    @property
    def session(self) -> ConversationSession:
        return self._machine.session

    def snapshot(self) -> SessionSnapshot:
        session = self._machine.session
        return SessionSnapshot(
            thread_id=session.thread_id,
            title=session.title,
            messages=tuple(replace(m) for m in session.messages),
            status_text=self._machine.status_text,
            is_loading=self._machine.is_active or self._is_loading_chat,
            generating_media=self._machine.generating_media,
            last_media_kind=self._machine.last_media_kind,
        )

    async def send_message(
        self,
        text: str,
        *,
        file_url: str | None = None,
        use_agent: bool = False,
        deep_research: bool = False,
    ) -> SessionSnapshot:
        """Send a user message and wait until its exchange finishes or is superseded."""
        task = self.start_exchange(text, file_url=file_url, use_agent=use_agent, deep_research=deep_research)
        await asyncio.wait({task})
        return self.snapshot()

    def start_exchange(
        self,
        text: str,
        *,
        file_url: str | None = None,
        use_agent: bool = False,
        deep_research: bool = False,
    ) -> asyncio.Task:
        """Start an exchange in the background, superseding any exchange still open."""
        self._cancel_running_exchange()

        content = attach_file(text, file_url) if file_url else text
        intent = classify(content)
        token = self._machine.begin_exchange(
            content,
            intent,
            placeholder=RESEARCH_PLACEHOLDER if deep_research else None,
        )

        session = self._machine.session
        request = ChatRequest(
            messages=[m.to_wire() for m in session.committed_messages()],
            model=self.model,
            thread_id=session.thread_id if session.has_remote_identity else None,
            file_url=file_url,
            use_agent=use_agent,
            deep_research=deep_research,
            max_search_results=self._deep_research_max_results,
        )

        self._start_media_timer(intent)
        self._exchange_task = asyncio.create_task(self._run_exchange(token, request))
        self._notify()
        return self._exchange_task

    def abort(self) -> bool:
        """Abort the open exchange; it ends with the fallback message."""
        token = self._machine.current_token
        if token is None:
            return False
        self._machine.fail(token, "aborted by user")
        self._cancel_task()
        self._notify()
        return True

    async def start_new(self) -> None:
        self._cancel_running_exchange()
        await self._persistence.flush()
        self._machine.reset(ConversationSession.new())
        logger.info("Started a new conversation")
        self._notify()

    async def load(self, thread_id: str) -> bool:
        """Replace the session with a stored conversation. Returns False if it cannot be fetched."""
        self._cancel_running_exchange()
        await self._persistence.flush()

        self._is_loading_chat = True
        try:
            record = await self._store.fetch(thread_id)
        except StoreError as ex:
            logger.error(f"Loading conversation {thread_id} failed: {ex}")
            return False
        finally:
            self._is_loading_chat = False

        self._machine.reset(
            ConversationSession.from_remote(record.id, record.title, record.messages, record.last_updated)
        )
        logger.info(f"Loaded conversation {record.id} ({len(record.messages)} messages)")
        self._notify()
        return True

    async def rename(self, title: str) -> bool:
        """Rename the conversation and persist it immediately."""
        session = self._machine.session
        if not session.has_remote_identity:
            raise RenameNotAllowedError("Conversation has not been saved yet")
        title = title.strip()
        if not title:
            raise ValueError("Title must not be empty")

        previous = session.title
        session.title = title
        saved = await self._persistence.save_now(session)
        if not saved:
            session.title = previous
        self._notify()
        return saved

    async def list_history(self) -> dict[str, list[ConversationRecord]]:
        try:
            return await self._store.list_conversations()
        except StoreError as ex:
            logger.error(f"Fetching conversation history failed: {ex}")
            return {}

    async def close(self) -> None:
        self._cancel_running_exchange()
        if self._media_timer is not None:
            self._media_timer.cancel()
            self._media_timer = None
        await self._persistence.close()

    async def _run_exchange(self, token: ExchangeToken, request: ChatRequest) -> None:
        try:
            async with contextlib.aclosing(self._chat_api.stream(request)) as chunks:
                async with contextlib.aclosing(iter_lines(chunks)) as lines:
                    async for line in lines:
                        if token.cancelled:
                            return
                        try:
                            event = parse_event(line)
                        except EventParseError as ex:
                            logger.warning(f"Skipping malformed stream line ({ex}): {ex.line[:200]!r}")
                            continue
                        if event is None:
                            continue
                        if not self._machine.apply(token, event):
                            return
                        self._notify()
        except StreamTransportError as ex:
            if self._machine.fail(token, str(ex)):
                self._notify()
            return
        except Exception as ex:
            logger.exception(f"Unexpected error reading stream for exchange {token.exchange_id}")
            if self._machine.fail(token, f"{type(ex).__name__}: {ex}"):
                self._notify()
            return

        if self._machine.current_token is token:
            logger.warning(f"Stream for exchange {token.exchange_id} ended without a terminal event")
            self._machine.apply(token, DoneEvent())
            self._notify()

    def _cancel_running_exchange(self) -> None:
        self._machine.cancel_exchange()
        self._cancel_task()

    def _cancel_task(self) -> None:
        task = self._exchange_task
        self._exchange_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _start_media_timer(self, intent: MediaIntent) -> None:
        if self._media_timer is not None:
            self._media_timer.cancel()
            self._media_timer = None
        if intent is not MediaIntent.NONE and self._media_indicator_timeout_seconds > 0:
            self._media_timer = asyncio.create_task(self._expire_media_indicator())

    async def _expire_media_indicator(self) -> None:
        await asyncio.sleep(self._media_indicator_timeout_seconds)
        self._media_timer = None
        if self._machine.generating_media is not MediaIntent.NONE:
            logger.debug("Media indicator timed out")
            self._machine.clear_media_indicator()
            self._notify()

    def _notify(self) -> None:
        if self._on_update is not None:
            try:
                self._on_update(self.snapshot())
            except Exception as ex:
                logger.warning(f"Session update listener failed: {ex}")
