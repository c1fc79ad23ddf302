from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import httpx

from chat_stream_client.app_config import AppConfig, RuntimeEnv
from chat_stream_client.backend.chat_api import ChatStreamApi
from chat_stream_client.backend.store import ConversationStore
from chat_stream_client.client import ConversationClient, SessionSnapshot
from chat_stream_client.conversation.persistence import PersistenceCoordinator
from chat_stream_client.errors import StoreError
from chat_stream_client.logging_config import setup_logging

SESSION_COOKIE_NAME = "jwt"


@dataclass
class AppRuntime:
    client: ConversationClient
    api_http: httpx.AsyncClient
    store_http: httpx.AsyncClient
    log_descriptions: list[str]

    async def aclose(self) -> None:
        try:
            await self.client.close()
        finally:
            await self.api_http.aclose()
            await self.store_http.aclose()


async def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    on_update: Callable[[SessionSnapshot], None] | None = None,
    on_save_failed: Callable[[StoreError], None] | None = None,
) -> AppRuntime:
    log_descriptions = setup_logging(
        level=app.log_level,
        consumers=app.log_consumers,
        http_level=app.http_log_level,
    )

    cookies = {SESSION_COOKIE_NAME: env.session_cookie} if env.session_cookie else None
    api_http = httpx.AsyncClient(base_url=app.api_url, timeout=app.request_timeout_seconds)
    store_http = httpx.AsyncClient(
        base_url=app.backend_url,
        cookies=cookies,
        timeout=app.request_timeout_seconds,
    )

    store = ConversationStore(store_http)
    persistence = PersistenceCoordinator(
        store,
        debounce_seconds=app.save_debounce_seconds,
        title_max_chars=app.title_max_chars,
        on_save_failed=on_save_failed,
    )
    client = ConversationClient(
        chat_api=ChatStreamApi(api_http),
        store=store,
        persistence=persistence,
        model=app.model,
        deep_research_max_results=app.deep_research_max_results,
        media_indicator_timeout_seconds=app.media_indicator_timeout_seconds,
        on_update=on_update,
    )

    return AppRuntime(
        client=client,
        api_http=api_http,
        store_http=store_http,
        log_descriptions=log_descriptions,
    )
