from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chat_stream_client.errors import StoreError

RECENCY_BUCKETS = ("today", "yesterday", "lastWeek", "lastMonth", "older")


@dataclass(frozen=True)
class ConversationRecord:
    id: str
    title: str
    messages: list[dict] = field(default_factory=list)
    last_updated: str | None = None


def _on_retry(retry_state):
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason} listing conversations. Retrying in {wait:.1f}s (attempt {attempt}/3)...")


def _record_from(chat: object) -> ConversationRecord:
    if not isinstance(chat, dict):
        raise StoreError("Store response is missing the 'chat' object")
    chat_id = chat.get("id") or chat.get("chatId") or chat.get("_id")
    if not chat_id:
        raise StoreError("Store response is missing the conversation id")
    messages = chat.get("messages") or []
    return ConversationRecord(
        id=str(chat_id),
        title=str(chat.get("title") or ""),
        messages=[m for m in messages if isinstance(m, dict)],
        last_updated=chat.get("lastUpdated"),
    )


class ConversationStore:
    """Client for the remote conversation store.

    Every call relies on the ambient session cookie carried by ``client``; the
    store rejecting a call is reported like any other failure, as StoreError.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def create(self, local_id: str | None, title: str, messages: list[dict]) -> ConversationRecord:
        data = await self._send(
            "POST",
            "/api/chat/save",
            json={"chatId": local_id, "title": title, "messages": messages},
        )
        return _record_from(data.get("chat"))

    async def update(
        self,
        thread_id: str,
        title: str,
        messages: list[dict],
        *,
        preserve_timestamp: bool = False,
    ) -> ConversationRecord:
        data = await self._send(
            "PUT",
            f"/api/chat/{thread_id}/update",
            json={"title": title, "messages": messages, "preserveTimestamp": preserve_timestamp},
        )
        return _record_from(data.get("chat"))

    async def fetch(self, thread_id: str) -> ConversationRecord:
        data = await self._send("GET", f"/api/chat/{thread_id}")
        return _record_from(data.get("chat"))

    async def list_conversations(self) -> dict[str, list[ConversationRecord]]:
        """Return stored conversations grouped by recency bucket, newest bucket first."""
        try:
            response = await self._get_history()
        except httpx.HTTPError as ex:
            raise StoreError(f"Listing conversations failed: {ex}") from ex

        categories = self._parse(response).get("categories") or {}
        grouped: dict[str, list[ConversationRecord]] = {}
        for bucket in RECENCY_BUCKETS:
            grouped[bucket] = [_record_from(chat) for chat in categories.get(bucket) or []]
        return grouped

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(3),
        before_sleep=_on_retry,
        reraise=True,
    )
    async def _get_history(self) -> httpx.Response:
        return await self._client.get("/api/chat/history/all")

    async def _send(self, method: str, url: str, *, json: dict | None = None) -> dict:
        logger.debug(f"Store request: {method} {url}")
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as ex:
            raise StoreError(f"{method} {url} failed: {ex}") from ex
        return self._parse(response)

    def _parse(self, response: httpx.Response) -> dict:
        if response.status_code >= 400:
            raise StoreError(
                f"Store returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as ex:
            raise StoreError("Store returned a body that is not JSON") from ex
        if not isinstance(data, dict) or not data.get("success"):
            raise StoreError(f"Store reported failure: {str(data)[:200]}", status_code=response.status_code)
        return data
