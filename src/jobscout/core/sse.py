"""SSE framing for agent streams.

Server side:
    - ``encode_event`` turns one ``SSEMessage`` into a ``data: <json>\\n\\n`` frame
    - ``sse_response`` wraps an async iterator of messages into a
      ``StreamingResponse`` with event-stream headers

Client side:
    - ``SSEDecoder`` buffers raw text and yields parsed messages
    - ``iter_sse_messages`` adapts an async byte/text iterator (e.g. an
      httpx streaming response) into messages
"""

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator, Iterator

from fastapi.responses import StreamingResponse

from jobscout.core.logging import get_logger
from jobscout.schemas.stream import SSEMessage

logger = get_logger(__name__)

SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

FRAME_SEPARATOR = "\n\n"
DATA_PREFIX = "data: "


def encode_event(message: SSEMessage) -> str:
    """Frame one message for the wire."""
    body = json.dumps(message.to_wire(), ensure_ascii=False)
    return f"{DATA_PREFIX}{body}{FRAME_SEPARATOR}"


async def encode_stream(messages: AsyncIterator[SSEMessage]) -> AsyncIterator[bytes]:
    """Lazily encode a message iterator into UTF-8 frames.

    When the consumer stops early (client disconnect cancels the response
    task), the source iterator is closed so pending work is abandoned.
    """
    try:
        async for message in messages:
            yield encode_event(message).encode("utf-8")
    finally:
        aclose = getattr(messages, "aclose", None)
        if aclose is not None:
            await aclose()


def sse_response(messages: AsyncIterator[SSEMessage]) -> StreamingResponse:
    """Build the HTTP response for an agent stream."""
    return StreamingResponse(encode_stream(messages), headers=SSE_HEADERS)


# =============================================================================
# Client-side decoding
# =============================================================================


class SSEDecoder:
    """Incremental parser for ``data:`` frames.

    Feed arbitrary text slices; complete frames are returned as they
    become available. Lines without the ``data: `` prefix and frames whose
    JSON does not parse are skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[SSEMessage]:
        self._buffer += text.replace("\r\n", "\n")
        blocks = self._buffer.split(FRAME_SEPARATOR)
        self._buffer = blocks.pop()
        return [msg for block in blocks for msg in self._parse_block(block)]

    def flush(self) -> list[SSEMessage]:
        """Parse whatever is left once the stream ends."""
        rest, self._buffer = self._buffer, ""
        return list(self._parse_block(rest))

    @staticmethod
    def _parse_block(block: str) -> Iterator[SSEMessage]:
        for line in block.split("\n"):
            if not line.startswith(DATA_PREFIX):
                continue
            try:
                yield SSEMessage.model_validate(json.loads(line[len(DATA_PREFIX) :]))
            except ValueError:
                logger.debug("sse_frame_malformed", line=line[:200])


def decode_events(text: str) -> list[SSEMessage]:
    """Parse a complete event-stream body."""
    decoder = SSEDecoder()
    return decoder.feed(text) + decoder.flush()


async def iter_sse_messages(
    chunks: AsyncIterable[bytes | str],
) -> AsyncIterator[SSEMessage]:
    """Yield messages from an async iterator of raw body chunks."""
    decoder = SSEDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")()
    async for chunk in chunks:
        text = utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        for message in decoder.feed(text):
            yield message
    for message in decoder.flush():
        yield message
