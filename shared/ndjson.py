from __future__ import annotations

import json
from collections.abc import AsyncIterator

from shared.errors import ProtocolError


def decode_frame(line: bytes | str) -> dict:
    text = line.decode("utf-8") if isinstance(line, (bytes, bytearray)) else line
    try:
        frame = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"invalid frame: {exc.msg}") from exc
    if not isinstance(frame, dict):
        raise ProtocolError("frame must be a JSON object")
    return frame


async def read_lines(reader) -> AsyncIterator[bytes]:
    while True:
        line = await reader.readline()
        if not line:
            break
        if not line.strip():
            continue
        yield line


def encode_frame(frame: dict) -> bytes:
    return (json.dumps(frame, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")
