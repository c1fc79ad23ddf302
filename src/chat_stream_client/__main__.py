import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from chat_stream_client.app_config import load_json_config, parse_app_config, resolve_runtime_env
from chat_stream_client.bootstrap import bootstrap_runtime
from chat_stream_client.client import ConversationClient
from chat_stream_client.commands.router import CommandRouter
from chat_stream_client.console import TerminalRenderer
from chat_stream_client.errors import RenameNotAllowedError, StoreError
from chat_stream_client.services.session_controller import SessionController

_LINE_PREFIX = "assistant> "
_USER_PROMPT = "you> "

_HELP_LINES = [
    "/new                    start a new conversation",
    "/load <id>              load a saved conversation",
    "/rename <title>         rename the current conversation",
    "/history                list saved conversations",
    "/model <name>           switch model (no argument shows the current one)",
    "/research <text>        ask the deep-research agent",
    "/agent <text>           ask with the tool-using agent enabled",
    "/attach <url> <text>    send a message with an attached file",
    "exit | quit             leave",
]


class ChatRepl:
    def __init__(self, client: ConversationClient, renderer: TerminalRenderer):
        self._client = client
        self._renderer = renderer
        self._sessions = SessionController(line_prefix=_LINE_PREFIX)
        self._router = CommandRouter(
            on_help=self._on_help,
            on_new=self._on_new,
            on_load=self._on_load,
            on_rename=self._on_rename,
            on_history=self._on_history,
            on_model=self._on_model,
            on_research=self._on_research,
            on_agent=self._on_agent,
            on_attach=self._on_attach,
            on_unknown=self._on_unknown,
        )

    async def handle(self, user_input: str) -> None:
        if await self._router.try_handle(user_input):
            return
        await self._send(user_input)

    async def _send(self, text: str, **options) -> None:
        self._renderer.begin(self._client.snapshot())
        try:
            await self._client.send_message(text, **options)
        finally:
            self._renderer.end()

    async def _on_help(self) -> None:
        for line in _HELP_LINES:
            print(f"{_LINE_PREFIX}{line}")

    async def _on_new(self) -> None:
        await self._client.start_new()
        print(f"{_LINE_PREFIX}Started a new conversation.")

    async def _on_load(self, argument: str) -> None:
        if not argument:
            print(f"{_LINE_PREFIX}Usage: /load <id>")
            return
        if not await self._client.load(argument):
            print(f"{_LINE_PREFIX}Could not load conversation {argument}.")
            return
        for line in self._sessions.format_loaded_summary_lines(self._client.session):
            print(line)

    async def _on_rename(self, argument: str) -> None:
        if not argument:
            print(f"{_LINE_PREFIX}Usage: /rename <title>")
            return
        try:
            renamed = await self._client.rename(argument)
        except RenameNotAllowedError:
            print(f"{_LINE_PREFIX}Send a message first; unsaved conversations cannot be renamed.")
            return
        if renamed:
            print(f"{_LINE_PREFIX}Renamed to: {self._client.session.title}")
        else:
            print(f"{_LINE_PREFIX}Rename was not saved; try again.")

    async def _on_history(self) -> None:
        grouped = await self._client.list_history()
        for line in self._sessions.format_history_lines(grouped, active_thread_id=self._client.session.thread_id):
            print(line)

    async def _on_model(self, argument: str) -> None:
        if argument:
            self._client.model = argument
        print(f"{_LINE_PREFIX}Model: {self._client.model}")

    async def _on_research(self, argument: str) -> None:
        if not argument:
            print(f"{_LINE_PREFIX}Usage: /research <text>")
            return
        await self._send(argument, deep_research=True)

    async def _on_agent(self, argument: str) -> None:
        if not argument:
            print(f"{_LINE_PREFIX}Usage: /agent <text>")
            return
        await self._send(argument, use_agent=True)

    async def _on_attach(self, argument: str) -> None:
        file_url, _, text = argument.partition(" ")
        if not file_url or not text.strip():
            print(f"{_LINE_PREFIX}Usage: /attach <url> <text>")
            return
        await self._send(text.strip(), file_url=file_url)

    def _on_unknown(self, command: str) -> None:
        print(f"{_LINE_PREFIX}Unknown command: {command} (try /help)")


def _print_save_failure(error: StoreError) -> None:
    print(f"\n{_LINE_PREFIX}[Conversation could not be saved: {error}]", flush=True)


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env()

    renderer = TerminalRenderer(line_prefix=_LINE_PREFIX)
    runtime = await bootstrap_runtime(app, env, on_update=renderer.update, on_save_failed=_print_save_failure)
    repl = ChatRepl(runtime.client, renderer)

    print("chat-stream-client (type 'exit' to quit, '/help' for commands)")
    print(f"Chat API: {app.api_url} | Store: {app.backend_url} | Model: {app.model}")
    if env.session_cookie is None:
        print("No CHAT_SESSION_COOKIE set; conversations may not be saved.")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = await asyncio.to_thread(input, _USER_PROMPT)
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await repl.handle(trimmed)
                print()
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.aclose()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
