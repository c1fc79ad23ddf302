import unittest

from chat_stream_client.backend.store import ConversationRecord
from chat_stream_client.conversation.models import ConversationSession
from chat_stream_client.services.session_controller import SessionController


class SessionControllerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.controller = SessionController(line_prefix="> ")

    def test_short_id(self) -> None:
        self.assertEqual("abc", self.controller.short_id("abc"))
        self.assertEqual("65f0c2a1", self.controller.short_id("65f0c2a1b2c3d4e5"))

    def test_history_lines_grouped_and_marked(self) -> None:
        grouped = {
            "today": [ConversationRecord(id="65f0c2a1b2c3", title="Trip", last_updated="2026-10-18T09:00:00Z")],
            "yesterday": [],
            "older": [ConversationRecord(id="old-1", title="")],
        }

        lines = self.controller.format_history_lines(grouped, active_thread_id="65f0c2a1b2c3")

        self.assertEqual(
            [
                "> Today:",
                "> * Trip [65f0c2a1] (id=65f0c2a1b2c3, updated=2026-10-18T09:00:00Z)",
                "> Older:",
                ">   old-1 [old-1] (id=old-1, updated=-)",
            ],
            lines,
        )

    def test_empty_history(self) -> None:
        self.assertEqual(
            ["> No saved conversations."],
            self.controller.format_history_lines({}, active_thread_id=None),
        )

    def test_loaded_summary(self) -> None:
        session = ConversationSession.from_remote(
            "remote-1",
            "Trip",
            [
                {"role": "user", "content": "plan a trip"},
                {"role": "assistant", "content": "Sure"},
                {"role": "user", "content": "to   Lisbon\nin May"},
            ],
            "2026-10-18T09:00:00Z",
        )

        lines = self.controller.format_loaded_summary_lines(session)

        self.assertEqual(
            [
                "> Loaded: Trip (id=remote-1)",
                "> - Messages: 3 (user=2, assistant=1)",
                "> - Updated: 2026-10-18T09:00:00Z",
                "> - Last user: to Lisbon in May",
            ],
            lines,
        )


if __name__ == "__main__":
    unittest.main()
