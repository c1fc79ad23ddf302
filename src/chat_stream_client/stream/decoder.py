from __future__ import annotations

import codecs
from collections.abc import AsyncGenerator, AsyncIterable

from loguru import logger


async def iter_lines(chunks: AsyncIterable[bytes], *, encoding: str = "utf-8") -> AsyncGenerator[str, None]:
    """Yield each newline-terminated line of a byte stream, without the newline.

    Buffers are decoded incrementally, so a multi-byte character or a line split
    across reads is reassembled before it is yielded. A trailing fragment that
    never receives its newline is dropped when the stream ends. Errors raised by
    ``chunks`` propagate to the caller.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    buffer = ""

    async for chunk in chunks:
        if not chunk:
            continue
        buffer += decoder.decode(chunk)

        start = 0
        while True:
            newline = buffer.find("\n", start)
            if newline == -1:
                break
            yield buffer[start:newline]
            start = newline + 1
        buffer = buffer[start:]

    buffer += decoder.decode(b"", final=True)
    if buffer:
        logger.debug(f"Discarding unterminated stream fragment ({len(buffer)} chars)")
