from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass

import httpx
from loguru import logger

from chat_stream_client.errors import StreamTransportError

CHAT_PATH = "/api/chat"
RESEARCH_PATH = "/api/react-search-streaming"


@dataclass
class ChatRequest:
    messages: list[dict]
    model: str
    thread_id: str | None = None
    file_url: str | None = None
    use_agent: bool = False
    deep_research: bool = False
    max_search_results: int = 5

    @property
    def path(self) -> str:
        return RESEARCH_PATH if self.deep_research else CHAT_PATH

    def to_body(self) -> dict:
        body = {
            "messages": self.messages,
            "model": self.model,
            "thread_id": self.thread_id,
            "file_url": self.file_url,
        }
        if self.deep_research:
            body["max_search_results"] = self.max_search_results
        else:
            body.update({"use_agent": self.use_agent, "deep_research": False, "stream": True})
        return body


class ChatStreamApi:
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def stream(self, request: ChatRequest) -> AsyncGenerator[bytes, None]:
        """Open the chat stream and yield raw body buffers as they arrive.

        Raises StreamTransportError if the request cannot be sent, the backend
        answers with an error status, or a read fails part-way through.
        """
        logger.debug(
            f"Chat request: path={request.path}, model={request.model}, "
            f"messages={len(request.messages)}, thread_id={request.thread_id}"
        )
        try:
            async with self._client.stream("POST", request.path, json=request.to_body()) as response:
                if response.status_code >= 400:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise StreamTransportError(
                        f"API returned {response.status_code}: {detail[:200]}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as ex:
            raise StreamTransportError(f"Chat stream failed: {ex}") from ex
