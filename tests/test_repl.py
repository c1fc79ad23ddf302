import asyncio
import io
import json
import unittest
from contextlib import redirect_stdout

from chat_stream_client.__main__ import ChatRepl
from chat_stream_client.backend.store import ConversationRecord
from chat_stream_client.client import ConversationClient
from chat_stream_client.console import TerminalRenderer
from chat_stream_client.conversation.persistence import PersistenceCoordinator
from tests.fakes import FakeStore, FakeStreamApi, lines


class ChatReplTests(unittest.TestCase):
    def _run(self, *inputs: str, scripts=(), store: FakeStore | None = None):
        store = store or FakeStore()
        api = FakeStreamApi(*scripts)

        async def scenario():
            renderer = TerminalRenderer(line_prefix="assistant> ")
            client = ConversationClient(
                chat_api=api,
                store=store,
                persistence=PersistenceCoordinator(store, debounce_seconds=10),
                model="gemini-1.5-flash",
                on_update=renderer.update,
            )
            repl = ChatRepl(client, renderer)
            for line in inputs:
                await repl.handle(line)
            await client.close()
            return client

        buf = io.StringIO()
        with redirect_stdout(buf):
            client = asyncio.run(scenario())
        return client, api, buf.getvalue()

    def test_message_is_streamed_to_terminal(self) -> None:
        script = [lines(json.dumps({"type": "chunk", "chunk": "Hi "}), json.dumps({"type": "chunk", "chunk": "there"})), lines('{"type":"done"}')]

        client, _, output = self._run("hello", scripts=[script])

        self.assertIn("assistant> Hi there\n", output)
        self.assertEqual("hello", client.session.title)

    def test_model_command_switches_model(self) -> None:
        client, api, output = self._run("/model gpt-4o", "hi", scripts=[[lines('{"type":"done"}')]])

        self.assertIn("assistant> Model: gpt-4o", output)
        self.assertEqual("gpt-4o", api.requests[0].model)

    def test_rename_before_first_save_is_refused(self) -> None:
        _, _, output = self._run("/rename Trip")

        self.assertIn("unsaved conversations cannot be renamed", output)

    def test_load_and_history(self) -> None:
        store = FakeStore()
        store.seed(ConversationRecord(id="remote-1", title="Trip", messages=[{"role": "user", "content": "plan"}]))

        client, _, output = self._run("/load remote-1", "/history", store=store)

        self.assertIn("assistant> Loaded: Trip (id=remote-1)", output)
        self.assertIn("assistant> Today:", output)
        self.assertIn("* Trip", output)
        self.assertEqual("remote-1", client.session.thread_id)

    def test_attach_requires_url_and_text(self) -> None:
        _, api, output = self._run("/attach https://x.test/a.png")

        self.assertIn("Usage: /attach <url> <text>", output)
        self.assertEqual([], api.requests)

    def test_unknown_command(self) -> None:
        _, _, output = self._run("/nope")

        self.assertIn("Unknown command: /nope", output)


if __name__ == "__main__":
    unittest.main()
