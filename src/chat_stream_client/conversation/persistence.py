from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from loguru import logger

from chat_stream_client.backend.store import ConversationRecord
from chat_stream_client.conversation.models import (
    DEFAULT_TITLE_MAX_CHARS,
    ConversationSession,
    MutationSource,
    is_placeholder_id,
)
from chat_stream_client.errors import StoreError


class ConversationWriter(Protocol):
    async def create(self, local_id: str | None, title: str, messages: list[dict]) -> ConversationRecord: ...

    async def update(
        self,
        thread_id: str,
        title: str,
        messages: list[dict],
        *,
        preserve_timestamp: bool = False,
    ) -> ConversationRecord: ...


class SaveState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"


class PersistenceCoordinator:
    """Debounces save requests and keeps at most one remote write in flight.

    Transitions:
      IDLE --request--> SCHEDULED
      SCHEDULED --request--> SCHEDULED (timer restarted, latest session kept)
      SCHEDULED --timer--> IN_FLIGHT
      IN_FLIGHT --request--> IN_FLIGHT (request dropped, session remembered)
      IN_FLIGHT --write finished or failed--> IDLE

    A dropped request is picked up by the next completed exchange, or by
    ``flush()`` once the write in flight has finished.
    """

    def __init__(
        self,
        store: ConversationWriter,
        *,
        debounce_seconds: float = 2.0,
        title_max_chars: int = DEFAULT_TITLE_MAX_CHARS,
        on_saved: Callable[[ConversationSession, ConversationRecord], None] | None = None,
        on_save_failed: Callable[[StoreError], None] | None = None,
    ):
        self._store = store
        self._debounce_seconds = debounce_seconds
        self._title_max_chars = title_max_chars
        self._on_saved = on_saved
        self._on_save_failed = on_save_failed
        self._state = SaveState.IDLE
        self._timer: asyncio.Task | None = None
        self._pending: ConversationSession | None = None
        self._dropped: ConversationSession | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> SaveState:
        return self._state

    def request_save(self, session: ConversationSession) -> None:
        if self._state is SaveState.IN_FLIGHT:
            logger.debug("Save already in flight; dropping save request")
            self._dropped = session
            return

        self._dropped = None
        if self._timer is not None:
            self._timer.cancel()
            logger.debug("Save request coalesced; debounce timer restarted")
        self._pending = session
        self._state = SaveState.SCHEDULED
        self._timer = asyncio.create_task(self._save_after_quiet_window())

    async def save_now(self, session: ConversationSession) -> bool:
        """Write immediately, skipping the debounce window. Returns True on success."""
        if self._state is SaveState.IN_FLIGHT:
            logger.debug("Save already in flight; dropping immediate save")
            return False
        if not self._should_persist(session):
            logger.debug("Nothing to persist yet; keeping any scheduled save")
            return False
        self._cancel_timer()
        return await self._write(session)

    async def flush(self) -> None:
        """Run a scheduled save now and wait for any write in flight to finish.

        A request dropped while that write was in flight is written afterwards.
        """
        if self._state is SaveState.SCHEDULED and self._pending is not None:
            await self.save_now(self._pending)
        await self._idle.wait()

        dropped = self._dropped
        if dropped is not None and self._state is SaveState.IDLE:
            self._dropped = None
            await self.save_now(dropped)

    async def close(self) -> None:
        await self.flush()

    async def _save_after_quiet_window(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        session = self._pending
        self._timer = None
        self._pending = None
        if session is None:
            self._state = SaveState.IDLE
            return
        await self._write(session)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        if self._state is SaveState.SCHEDULED:
            self._state = SaveState.IDLE

    def _should_persist(self, session: ConversationSession) -> bool:
        if not session.messages:
            return False
        if session.messages[-1].is_temporary:
            return False
        return any(m.role == "user" for m in session.messages)

    async def _write(self, session: ConversationSession) -> bool:
        if not self._should_persist(session):
            logger.debug("Nothing to persist yet; skipping save")
            self._state = SaveState.IDLE
            return False

        self._state = SaveState.IN_FLIGHT
        self._idle.clear()
        if self._dropped is session:
            self._dropped = None
        source = session.mutation_source
        revision = session.revision
        title = session.ensure_title(self._title_max_chars)
        messages = [m.to_wire() for m in session.committed_messages()]
        try:
            if session.has_remote_identity:
                preserve = source is not MutationSource.EXCHANGE
                record = await self._store.update(
                    session.thread_id or "",
                    title,
                    messages,
                    preserve_timestamp=preserve,
                )
                logger.info(
                    f"Updated conversation {session.thread_id} "
                    f"({len(messages)} messages, preserve_timestamp={preserve})"
                )
            else:
                record = await self._store.create(session.thread_id, title, messages)
                logger.info(f"Created conversation {record.id} ({len(messages)} messages)")
        except StoreError as ex:
            logger.error(f"Saving conversation failed: {ex}")
            if self._on_save_failed is not None:
                self._on_save_failed(ex)
            return False
        finally:
            self._state = SaveState.IDLE
            self._idle.set()

        self._reconcile(session, record, title, revision)
        return True

    def _reconcile(
        self,
        session: ConversationSession,
        record: ConversationRecord,
        sent_title: str,
        sent_revision: int,
    ) -> None:
        if is_placeholder_id(session.thread_id) and record.id != session.thread_id:
            logger.info(f"Adopted conversation id {record.id} (was {session.thread_id})")
            session.thread_id = record.id

        # A rename while the write was in flight wins over the echoed title.
        if record.title and session.title == sent_title:
            session.title = record.title

        if record.last_updated is not None:
            session.last_remote_update = record.last_updated
        # A user message appended while the write was in flight still needs its own save.
        if session.revision == sent_revision:
            session.mutation_source = MutationSource.SYNCED

        if self._on_saved is not None:
            self._on_saved(session, record)
