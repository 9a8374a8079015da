"""Tests for the NDJSON stream reframer."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import pytest

from chatbridge.providers import iter_ndjson


async def _chunks(*parts: bytes | str) -> AsyncIterator[bytes | str]:
    for part in parts:
        yield part


async def _collect(*parts: bytes | str) -> list[dict[str, Any]]:
    return [obj async for obj in iter_ndjson(_chunks(*parts))]


FRAMES = [
    {"message": {"role": "assistant", "content": "Hel"}, "done": False},
    {"message": {"role": "assistant", "content": "lo", "thinking": "hmm"}, "done": False},
    {"done": True, "total_duration": 123},
]
BODY = b"".join(json.dumps(frame).encode() + b"\n" for frame in FRAMES)


@pytest.mark.asyncio
async def test_single_chunk_yields_every_object_in_order() -> None:
    assert await _collect(BODY) == FRAMES


@pytest.mark.asyncio
async def test_split_at_every_offset() -> None:
    for offset in range(1, len(BODY)):
        assert await _collect(BODY[:offset], BODY[offset:]) == FRAMES, offset


@pytest.mark.asyncio
async def test_one_byte_chunks() -> None:
    parts = [BODY[i:i + 1] for i in range(len(BODY))]
    assert await _collect(*parts) == FRAMES


@pytest.mark.asyncio
async def test_multibyte_character_split_across_chunks() -> None:
    body = json.dumps({"message": {"content": "héllo 🚀"}}, ensure_ascii=False).encode() + b"\n"
    rocket = body.index("🚀".encode())
    parts = [body[: rocket + 1], body[rocket + 1 : rocket + 3], body[rocket + 3 :]]
    assert await _collect(*parts) == [{"message": {"content": "héllo 🚀"}}]


@pytest.mark.asyncio
async def test_malformed_and_blank_lines_are_skipped() -> None:
    body = b'{"a": 1}\n\n   \nnot json\n{"b": 2\n[1, 2]\n"str"\n{"c": 3}\n'
    assert await _collect(body) == [{"a": 1}, {"c": 3}]


@pytest.mark.asyncio
async def test_trailing_record_without_newline_is_flushed() -> None:
    assert await _collect(b'{"a": 1}\n{"done": ', b"true}") == [{"a": 1}, {"done": True}]


@pytest.mark.asyncio
async def test_trailing_garbage_is_dropped() -> None:
    assert await _collect(b'{"a": 1}\n{"trunc') == [{"a": 1}]


@pytest.mark.asyncio
async def test_crlf_line_endings_and_str_chunks() -> None:
    assert await _collect('{"a": 1}\r\n{"b"', ': 2}\r\n') == [{"a": 1}, {"b": 2}]


@pytest.mark.asyncio
async def test_empty_stream() -> None:
    assert await _collect() == []
    assert await _collect(b"") == []
