import unittest

from chat_stream_client.conversation.models import (
    DEFAULT_TITLE,
    ConversationSession,
    Message,
    MutationSource,
    derive_title,
    is_placeholder_id,
)


class PlaceholderIdTests(unittest.TestCase):
    def test_placeholder_prefixes(self) -> None:
        self.assertTrue(is_placeholder_id(None))
        self.assertTrue(is_placeholder_id("temp_1700000000000"))
        self.assertTrue(is_placeholder_id("new_1"))
        self.assertFalse(is_placeholder_id("65f0c2a1"))

    def test_new_session_has_placeholder_identity(self) -> None:
        session = ConversationSession.new()

        self.assertTrue(session.thread_id.startswith("temp_"))
        self.assertFalse(session.has_remote_identity)
        self.assertEqual(DEFAULT_TITLE, session.title)


class TitleTests(unittest.TestCase):
    def test_short_text_is_kept(self) -> None:
        self.assertEqual("Hello", derive_title("Hello"))

    def test_exactly_max_length_is_not_marked(self) -> None:
        text = "x" * 30
        self.assertEqual(text, derive_title(text))

    def test_long_text_is_truncated_with_ellipsis(self) -> None:
        text = "a" * 31
        self.assertEqual("a" * 30 + "...", derive_title(text))

    def test_title_is_derived_once(self) -> None:
        session = ConversationSession.new()
        session.append_user_message("What is the capital of France?")

        self.assertEqual("What is the capital of France?", session.ensure_title())
        session.messages[0].content = "Something else"
        self.assertEqual("What is the capital of France?", session.ensure_title())

    def test_renamed_title_is_not_replaced(self) -> None:
        session = ConversationSession.new()
        session.append_user_message("hello")
        session.title = "My chat"

        self.assertEqual("My chat", session.ensure_title())

    def test_default_title_kept_without_user_message(self) -> None:
        session = ConversationSession.new()
        session.messages.append(Message(role="assistant", content="Welcome"))

        self.assertEqual(DEFAULT_TITLE, session.ensure_title())


class SessionTests(unittest.TestCase):
    def test_thread_id_adopted_only_over_placeholder(self) -> None:
        session = ConversationSession.new()

        self.assertTrue(session.assign_thread_id("remote-1"))
        self.assertFalse(session.assign_thread_id("remote-2"))
        self.assertEqual("remote-1", session.thread_id)

    def test_blank_thread_id_is_not_adopted(self) -> None:
        session = ConversationSession()

        self.assertFalse(session.assign_thread_id(None))
        self.assertIsNone(session.thread_id)

    def test_user_message_marks_exchange(self) -> None:
        session = ConversationSession(mutation_source=MutationSource.SYNCED)
        session.append_user_message("hi")

        self.assertIs(MutationSource.EXCHANGE, session.mutation_source)
        self.assertEqual(1, session.revision)

    def test_from_remote(self) -> None:
        session = ConversationSession.from_remote(
            "remote-1",
            "Saved chat",
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            "2026-10-01T10:00:00Z",
        )

        self.assertTrue(session.has_remote_identity)
        self.assertIs(MutationSource.LOAD, session.mutation_source)
        self.assertEqual(["user", "assistant"], [m.role for m in session.messages])
        self.assertEqual("2026-10-01T10:00:00Z", session.last_remote_update)
        self.assertFalse(any(m.is_temporary for m in session.messages))

    def test_temporary_message_is_only_reported_when_last(self) -> None:
        session = ConversationSession()
        session.messages.append(Message(role="assistant", content="x", is_temporary=True))
        self.assertIsNotNone(session.temporary_message())

        session.messages[-1].is_temporary = False
        self.assertIsNone(session.temporary_message())

    def test_message_wire_form_has_role_and_content_only(self) -> None:
        message = Message(role="assistant", content="hi", is_temporary=True)

        self.assertEqual({"role": "assistant", "content": "hi"}, message.to_wire())

    def test_message_ids_are_unique(self) -> None:
        self.assertNotEqual(Message(role="user", content="a").id, Message(role="user", content="a").id)


if __name__ == "__main__":
    unittest.main()
