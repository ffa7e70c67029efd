from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from shared.errors import ProtocolError
from shared.ndjson import decode_frame, encode_frame, read_lines
from shared.protocol import error_response, event_frame, ok_response

logger = logging.getLogger(__name__)

Emit = Callable[[str, dict[str, Any]], Awaitable[None]]
Handler = Callable[[dict[str, Any], Emit, str], Awaitable[dict[str, Any]]]


class NDJSONService:
    def __init__(self, *, name: str, version: str, ops: dict[str, Handler]):
        self.name = name
        self.version = version
        self.ops = dict(ops)
        self.ops.setdefault("meta", self._meta)
        self.ops.setdefault("health", self._health)

    async def _meta(self, payload: dict, emit_event, req_id: str) -> dict:
        return {"name": self.name, "version": self.version, "ops": sorted(self.ops.keys())}

    async def _health(self, payload: dict, emit_event, req_id: str) -> dict:
        return {"status": "ok"}

    async def dispatch(self, req: dict[str, Any], write: Callable[[dict[str, Any]], None]) -> dict[str, Any]:
        req_id = str(req.get("id", ""))
        op = req.get("op")
        payload = req.get("payload") or {}
        handler = self.ops.get(op)
        if not handler:
            return error_response(req_id, f"unknown op: {op}", "unknown_op")
        if not isinstance(payload, dict):
            return error_response(req_id, "payload must be an object", "invalid_payload")

        async def emit(event_name: str, event_payload: dict) -> None:
            write(event_frame(req_id, event_name, event_payload))

        try:
            result = await handler(payload, emit, req_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s: op %s failed", self.name, op)
            return error_response(req_id, str(exc), exc.__class__.__name__)
        return ok_response(req_id, result or {})

    async def run_stdio(self) -> None:
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)
        stdout = sys.stdout.buffer

        def write(frame: dict[str, Any]) -> None:
            stdout.write(encode_frame(frame))
            stdout.flush()

        logger.info("%s %s serving on stdio", self.name, self.version)
        async for line in read_lines(reader):
            try:
                req = decode_frame(line)
            except ProtocolError as exc:
                logger.warning("%s: %s", self.name, exc)
                write(error_response("", str(exc), "protocol_error"))
                continue
            write(await self.dispatch(req, write))
