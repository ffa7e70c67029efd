from __future__ import annotations

import asyncio
import json
import logging
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from services.mission_control.service import submit_project_status, submit_task
from shared.runtime import MissionControlRuntime

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024
SSE_KEEPALIVE_S = 15.0


def create_handler(runtime: MissionControlRuntime, *, keepalive: float = SSE_KEEPALIVE_S):
    class Handler(BaseHTTPRequestHandler):
        def _cors(self) -> None:
            self.send_header("Access-Control-Allow-Origin", "*")
            self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
            self.send_header("Access-Control-Allow-Headers", "Content-Type")

        def _send_json(self, status: int, payload: dict) -> None:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.send_header("Cache-Control", "no-cache")
            self._cors()
            self.end_headers()
            self.wfile.write(data)

        def _send_error_json(self, status: int, error: str) -> None:
            self._send_json(status, {"ok": False, "error": error})

        def _read_json(self) -> dict | None:
            try:
                length = int(self.headers.get("Content-Length", "0") or 0)
            except ValueError:
                length = -1
            if length < 0:
                self._send_error_json(HTTPStatus.BAD_REQUEST, "invalid_content_length")
                return None
            if length > MAX_BODY_BYTES:
                self._send_error_json(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, "body_too_large")
                return None
            raw = self.rfile.read(length) if length else b""
            if not raw.strip():
                return {}
            try:
                payload = json.loads(raw.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                self._send_error_json(HTTPStatus.BAD_REQUEST, "invalid_json")
                return None
            if not isinstance(payload, dict):
                self._send_error_json(HTTPStatus.BAD_REQUEST, "invalid_json")
                return None
            return payload

        def _stream_events(self) -> None:
            sub = runtime.broadcaster.subscribe()
            self.close_connection = True
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "close")
            self._cors()
            self.end_headers()
            try:
                hello = {"type": "connected", "version": runtime.cache.version}
                self.wfile.write(f"event: connected\ndata: {json.dumps(hello)}\n\n".encode("utf-8"))
                self.wfile.flush()
                while True:
                    event = sub.get(timeout=keepalive)
                    if event is None:
                        if sub.closed:
                            break
                        self.wfile.write(b": keepalive\n\n")
                    else:
                        body = json.dumps(event, ensure_ascii=False)
                        self.wfile.write(f"event: {event['type']}\ndata: {body}\n\n".encode("utf-8"))
                    self.wfile.flush()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("event stream client %s went away", self.client_address[0])
            finally:
                runtime.broadcaster.unsubscribe(sub)

        def do_OPTIONS(self):  # noqa: N802
            self.send_response(HTTPStatus.NO_CONTENT)
            self._cors()
            self.send_header("Content-Length", "0")
            self.end_headers()

        def do_GET(self):  # noqa: N802
            path = urlsplit(self.path).path
            if path == "/api/data":
                data = runtime.cache.payload()
                if data is None:
                    self._send_json(HTTPStatus.SERVICE_UNAVAILABLE, {"error": "No data available"})
                    return
                self._send_json(HTTPStatus.OK, data)
            elif path == "/api/health":
                self._send_json(HTTPStatus.OK, runtime.health())
            elif path == "/api/events":
                self._stream_events()
            else:
                self._send_error_json(HTTPStatus.NOT_FOUND, "not_found")

        def do_POST(self):  # noqa: N802
            path = urlsplit(self.path).path
            if path not in ("/api/rebuild", "/api/tasks", "/api/projects/status"):
                self._send_error_json(HTTPStatus.NOT_FOUND, "not_found")
                return
            payload = self._read_json()
            if payload is None:
                return
            if path == "/api/rebuild":
                outcome = runtime.rebuild_now()
                status = HTTPStatus.OK if outcome.ok else HTTPStatus.INTERNAL_SERVER_ERROR
                self._send_json(status, outcome.to_dict())
                return
            try:
                if path == "/api/tasks":
                    result = submit_task(runtime, payload)
                    self._send_json(HTTPStatus.CREATED, result)
                else:
                    self._send_json(HTTPStatus.OK, submit_project_status(runtime, payload))
            except ValueError as exc:
                self._send_error_json(HTTPStatus.BAD_REQUEST, str(exc))
            except KeyError as exc:
                self._send_error_json(HTTPStatus.NOT_FOUND, f"unknown project: {exc.args[0]}")
            except OSError:
                logger.exception("could not update workspace document")
                self._send_error_json(HTTPStatus.INTERNAL_SERVER_ERROR, "write_failed")

        def log_message(self, format: str, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

    return Handler


def make_server(runtime: MissionControlRuntime, host: str, port: int) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((host, port), create_handler(runtime))
    server.daemon_threads = True
    return server


async def run_http_server(
    runtime: MissionControlRuntime,
    *,
    host: str = "127.0.0.1",
    port: int = 3001,
    stop_event: asyncio.Event | None = None,
) -> None:
    server = make_server(runtime, host, port)
    logger.info("HTTP API listening on http://%s:%d", *server.server_address[:2])
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.2}, daemon=True)
    thread.start()
    try:
        if stop_event is None:
            while True:
                await asyncio.sleep(3600)
        else:
            await stop_event.wait()
    finally:
        server.shutdown()
        thread.join(timeout=2)
        server.server_close()
