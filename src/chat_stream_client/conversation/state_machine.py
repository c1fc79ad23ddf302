from __future__ import annotations

import itertools
from collections.abc import Callable
from enum import Enum

from loguru import logger

from chat_stream_client.conversation.models import ConversationSession, Message
from chat_stream_client.media_intent import MediaIntent, detect_media
from chat_stream_client.stream.events import ChunkEvent, DoneEvent, ResultEvent, StatusEvent, StreamEvent

FALLBACK_MESSAGE = "Sorry, I encountered an error. Please try again."
RESEARCH_PLACEHOLDER = "Researching..."


class ExchangeState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_EVENT = "awaiting_first_event"
    STREAMING_PLACEHOLDER = "streaming_placeholder"
    FINALIZING = "finalizing"
    ABORTED = "aborted"


class ExchangeToken:
    """Identifies one request/response exchange. Cancelled when superseded."""

    def __init__(self, exchange_id: int):
        self.exchange_id = exchange_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"ExchangeToken(id={self.exchange_id}, cancelled={self._cancelled})"


class MessageStateMachine:
    """Folds stream events for the active exchange into the session's message list.

    At most one temporary message exists at any time, and when present it is the
    last element of ``session.messages``. Events carrying a token other than the
    current one are dropped.
    """

    def __init__(
        self,
        session: ConversationSession,
        *,
        on_committed: Callable[[ConversationSession], None] | None = None,
    ):
        self._session = session
        self._on_committed = on_committed
        self._state = ExchangeState.IDLE
        self._token: ExchangeToken | None = None
        self._intent = MediaIntent.NONE
        self._media_buffer: list[str] = []
        self._stub_placeholder = False
        self._exchange_ids = itertools.count(1)
        self.status_text = ""
        self.generating_media = MediaIntent.NONE
        self.last_media_kind = MediaIntent.NONE

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not ExchangeState.IDLE

    @property
    def current_token(self) -> ExchangeToken | None:
        return self._token

    def reset(self, session: ConversationSession) -> None:
        """Cancel any open exchange and take ownership of ``session``."""
        self.cancel_exchange()
        self._session = session
        self.last_media_kind = MediaIntent.NONE

    def begin_exchange(
        self,
        user_content: str,
        intent: MediaIntent = MediaIntent.NONE,
        *,
        placeholder: str | None = None,
    ) -> ExchangeToken:
        self.cancel_exchange()
        self._session.append_user_message(user_content)

        token = ExchangeToken(next(self._exchange_ids))
        self._token = token
        self._intent = intent
        self._state = ExchangeState.AWAITING_FIRST_EVENT
        self.generating_media = intent
        self.last_media_kind = MediaIntent.NONE

        if placeholder is not None and intent is MediaIntent.NONE:
            self._session.messages.append(Message(role="assistant", content=placeholder, is_temporary=True))
            self._stub_placeholder = True
            self._state = ExchangeState.STREAMING_PLACEHOLDER

        logger.debug(f"Exchange {token.exchange_id} started (intent={intent.value})")
        return token

    def apply(self, token: ExchangeToken, event: StreamEvent) -> bool:
        """Apply one event. Returns False when the token is no longer current."""
        if not self._is_current(token):
            logger.debug(f"Dropping {type(event).__name__} for stale exchange {token.exchange_id}")
            return False

        if isinstance(event, StatusEvent):
            self.status_text = event.text
        elif isinstance(event, ChunkEvent):
            self._apply_chunk(event.delta)
        elif isinstance(event, DoneEvent):
            self._apply_done(event)
        elif isinstance(event, ResultEvent):
            self._apply_result(event)
        return True

    def fail(self, token: ExchangeToken, reason: str = "") -> bool:
        """End the exchange after a transport failure, leaving one fallback message."""
        if not self._is_current(token):
            return False

        logger.error(f"Exchange {token.exchange_id} failed: {reason or 'aborted'}")
        self._state = ExchangeState.ABORTED
        self._discard_temporary()
        self._session.messages.append(Message(role="assistant", content=FALLBACK_MESSAGE))
        self._finish()
        return True

    def cancel_exchange(self) -> bool:
        """Invalidate the open exchange, if any, discarding its placeholder silently."""
        token = self._token
        if token is None:
            return False

        token.cancel()
        self._discard_temporary()
        self._token = None
        self._reset_exchange_state()
        logger.debug(f"Exchange {token.exchange_id} superseded")
        return True

    def clear_media_indicator(self) -> None:
        self.generating_media = MediaIntent.NONE

    def _is_current(self, token: ExchangeToken) -> bool:
        return token is self._token and not token.cancelled

    def _apply_chunk(self, delta: str) -> None:
        self._state = ExchangeState.STREAMING_PLACEHOLDER
        if self._intent is not MediaIntent.NONE:
            self._media_buffer.append(delta)
            return

        temporary = self._session.temporary_message()
        if temporary is None:
            self._session.messages.append(Message(role="assistant", content=delta, is_temporary=True))
        elif self._stub_placeholder:
            temporary.content = delta
            self._stub_placeholder = False
        else:
            temporary.content += delta

    def _apply_done(self, event: DoneEvent) -> None:
        self._state = ExchangeState.FINALIZING
        temporary = self._session.temporary_message()
        if temporary is not None and self._stub_placeholder:
            self._discard_temporary()
        elif temporary is not None:
            temporary.is_temporary = False
        elif self._media_buffer:
            self._session.messages.append(Message(role="assistant", content="".join(self._media_buffer)))

        self._adopt_thread_id(event.thread_id)
        self._finish()

    def _apply_result(self, event: ResultEvent) -> None:
        self._state = ExchangeState.FINALIZING
        self._discard_temporary()
        self._session.messages.append(Message(role=event.role, content=event.content))
        self.last_media_kind = detect_media(event.content)

        self._adopt_thread_id(event.thread_id)
        self._finish()

    def _adopt_thread_id(self, thread_id: str | None) -> None:
        if self._session.assign_thread_id(thread_id):
            logger.info(f"Adopted thread id {thread_id} from stream")

    def _discard_temporary(self) -> None:
        self._session.messages[:] = [m for m in self._session.messages if not m.is_temporary]
        self._stub_placeholder = False

    def _finish(self) -> None:
        self._token = None
        self._reset_exchange_state()
        if self._on_committed is not None:
            self._on_committed(self._session)

    def _reset_exchange_state(self) -> None:
        self._state = ExchangeState.IDLE
        self._intent = MediaIntent.NONE
        self._media_buffer = []
        self._stub_placeholder = False
        self.status_text = ""
        self.generating_media = MediaIntent.NONE
