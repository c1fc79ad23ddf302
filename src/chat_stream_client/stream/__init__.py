from chat_stream_client.stream.decoder import iter_lines
from chat_stream_client.stream.events import (
    ChunkEvent,
    DoneEvent,
    ResultEvent,
    StatusEvent,
    StreamEvent,
    parse_event,
)

__all__ = [
    "ChunkEvent",
    "DoneEvent",
    "ResultEvent",
    "StatusEvent",
    "StreamEvent",
    "iter_lines",
    "parse_event",
]
