"""Newline-delimited JSON framing for chunks on the HTTP body."""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from .chunks import Chunk, chunk_adapter
from .errors import FrameDecodeError

logger = logging.getLogger(__name__)

MEDIA_TYPE = "application/octet-stream"


def encode_chunk(chunk: Chunk) -> bytes:
    """One compact JSON object terminated by a newline."""
    return (chunk.model_dump_json(by_alias=True) + "\n").encode("utf-8")


def parse_frame(line: str) -> Chunk:
    try:
        return chunk_adapter.validate_json(line)
    except ValidationError as e:
        raise FrameDecodeError(f"bad frame {line[:80]!r}: {e.error_count()} error(s)") from e


class FrameDecoder:
    """Incremental decoder for byte bursts of any size.

    A multi-byte character or a line split across bursts is held until the
    rest arrives. Lines that fail to parse are logged and skipped.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[Chunk]:
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def finish(self) -> list[Chunk]:
        """Flush the trailing unterminated line, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        return self._parse_lines([rest])

    @staticmethod
    def _parse_lines(lines: list[str]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                chunks.append(parse_frame(line))
            except FrameDecodeError as e:
                logger.warning("Skipping frame: %s", e)
        return chunks


async def decode_frames(source: AsyncIterable[bytes]) -> AsyncIterator[Chunk]:
    """Turn a byte stream into chunks in arrival order."""
    decoder = FrameDecoder()
    async for data in source:
        for chunk in decoder.feed(data):
            yield chunk
    for chunk in decoder.finish():
        yield chunk
