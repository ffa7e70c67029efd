from __future__ import annotations

import asyncio
import json
import logging

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from shared.runtime import MissionControlRuntime

logger = logging.getLogger(__name__)


class WebSocketRelay:
    """Pushes broadcaster events to WebSocket clients.

    Every client gets a ``connected`` greeting carrying the current document, when there
    is one, then one JSON message per event. Messages sent by clients are read and ignored.
    """

    def __init__(self, runtime: MissionControlRuntime, *, poll_interval: float = 1.0):
        self.runtime = runtime
        self.poll_interval = poll_interval

    def greeting(self) -> dict:
        return {"type": "connected", "version": self.runtime.cache.version, "data": self.runtime.cache.payload()}

    @staticmethod
    async def _drain(websocket: ServerConnection) -> None:
        try:
            async for _ in websocket:
                pass
        except ConnectionClosed:
            pass

    async def handler(self, websocket: ServerConnection) -> None:
        broadcaster = self.runtime.broadcaster
        sub = broadcaster.subscribe()
        logger.info("websocket client connected (%d subscribers)", len(broadcaster))
        reader = asyncio.create_task(self._drain(websocket))
        try:
            greeting = self.greeting()
            if greeting["data"] is not None:
                await websocket.send(json.dumps(greeting, ensure_ascii=False))
            while not reader.done():
                event = await sub.next_event(self.poll_interval)
                if event is None:
                    if sub.closed:
                        break
                    continue
                await websocket.send(json.dumps(event, ensure_ascii=False))
        except ConnectionClosed:
            pass
        finally:
            reader.cancel()
            broadcaster.unsubscribe(sub)
            logger.info("websocket client disconnected (%d subscribers)", len(broadcaster))

    async def run(self, *, host: str = "127.0.0.1", port: int = 3002, stop_event: asyncio.Event | None = None) -> None:
        async with serve(self.handler, host, port) as server:
            logger.info("WebSocket relay listening on ws://%s:%d", host, port)
            if stop_event is None:
                await server.serve_forever()
            else:
                await stop_event.wait()
