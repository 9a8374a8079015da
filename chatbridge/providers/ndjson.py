"""
Newline-delimited JSON reframing.

Ollama emits one JSON object per line, but transport chunks do not line up
with line boundaries. ``iter_ndjson`` buffers across chunks and yields
each complete object exactly once, in order.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from chatbridge.core import get_logger

logger = get_logger(__name__)


def _parse_record(line: str) -> dict[str, Any] | None:
    record = line.strip()
    if not record:
        return None
    try:
        value = json.loads(record)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed upstream line", data={"line": record[:200]})
        return None
    if not isinstance(value, dict):
        logger.debug("Skipping non-object upstream line", data={"line": record[:200]})
        return None
    return value


async def iter_ndjson(chunks: AsyncIterable[bytes | str]) -> AsyncIterator[dict[str, Any]]:
    """
    Decode an arbitrarily chunked NDJSON stream into JSON objects.

    Malformed lines are skipped without ending the stream. A trailing record
    with no final newline is emitted if it parses.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    async for chunk in chunks:
        buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            obj = _parse_record(line)
            if obj is not None:
                yield obj

    buffer += decoder.decode(b"", final=True)
    obj = _parse_record(buffer)
    if obj is not None:
        yield obj
