from __future__ import annotations

from chat_stream_client.backend.store import RECENCY_BUCKETS, ConversationRecord
from chat_stream_client.conversation.models import ConversationSession

_BUCKET_LABELS = {
    "today": "Today",
    "yesterday": "Yesterday",
    "lastWeek": "Previous 7 days",
    "lastMonth": "Previous 30 days",
    "older": "Older",
}


class SessionController:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def format_history_entry(self, record: ConversationRecord, *, active_thread_id: str | None) -> str:
        marker = "*" if record.id == active_thread_id else " "
        title = record.title or record.id
        updated = record.last_updated or "-"
        return f"{self._line_prefix}{marker} {title} [{self.short_id(record.id)}] (id={record.id}, updated={updated})"

    def format_history_lines(
        self,
        grouped: dict[str, list[ConversationRecord]],
        *,
        active_thread_id: str | None,
    ) -> list[str]:
        lines: list[str] = []
        for bucket in RECENCY_BUCKETS:
            records = grouped.get(bucket) or []
            if not records:
                continue
            lines.append(f"{self._line_prefix}{_BUCKET_LABELS[bucket]}:")
            lines.extend(self.format_history_entry(r, active_thread_id=active_thread_id) for r in records)
        if not lines:
            lines.append(f"{self._line_prefix}No saved conversations.")
        return lines

    def format_loaded_summary_lines(self, session: ConversationSession) -> list[str]:
        user_count = sum(1 for m in session.messages if m.role == "user")
        assistant_count = sum(1 for m in session.messages if m.role == "assistant")
        lines = [f"{self._line_prefix}Loaded: {session.title} (id={session.thread_id})"]
        lines.append(
            f"{self._line_prefix}- Messages: {len(session.messages)} "
            f"(user={user_count}, assistant={assistant_count})"
        )
        lines.append(f"{self._line_prefix}- Updated: {session.last_remote_update or '-'}")
        last_user = next((m.content for m in reversed(session.messages) if m.role == "user"), "")
        if last_user:
            lines.append(f"{self._line_prefix}- Last user: {self._preview(last_user)}")
        return lines

    def _preview(self, text: str, max_chars: int = 80) -> str:
        text = " ".join(text.split())
        if len(text) <= max_chars:
            return text
        return text[: max_chars - 3] + "..."
