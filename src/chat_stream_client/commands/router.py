from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_new: Callable[[], Awaitable[None]],
        on_load: Callable[[str], Awaitable[None]],
        on_rename: Callable[[str], Awaitable[None]],
        on_history: Callable[[], Awaitable[None]],
        on_model: Callable[[str], Awaitable[None]],
        on_research: Callable[[str], Awaitable[None]],
        on_agent: Callable[[str], Awaitable[None]],
        on_attach: Callable[[str], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_new = on_new
        self._on_history = on_history
        self._with_argument: dict[str, Callable[[str], Awaitable[None]]] = {
            "/load": on_load,
            "/rename": on_rename,
            "/model": on_model,
            "/research": on_research,
            "/agent": on_agent,
            "/attach": on_attach,
        }
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, argument = trimmed.partition(" ")
        argument = argument.strip()

        if command == "/help":
            await self._on_help()
            return True
        if command == "/new":
            await self._on_new()
            return True
        if command == "/history":
            await self._on_history()
            return True
        handler = self._with_argument.get(command)
        if handler is not None:
            await handler(argument)
            return True

        self._on_unknown(trimmed)
        return True
