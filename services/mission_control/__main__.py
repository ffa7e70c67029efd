from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from pathlib import Path

from services.mission_control.http_api import run_http_server
from services.mission_control.service import MissionControlService
from services.mission_control.ws_relay import WebSocketRelay
from shared.config import load_config
from shared.protocol import VERSION
from shared.runtime import MissionControlRuntime
from shared.service_base import NDJSONService

logger = logging.getLogger("mission_control")

WATCHER_CHECK_S = 5.0


async def _supervise_watcher(runtime: MissionControlRuntime, stop: asyncio.Event) -> None:
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=WATCHER_CHECK_S)
        except asyncio.TimeoutError:
            if runtime.config.workspace.is_dir():
                runtime.watcher.ensure_running()


async def serve(runtime: MissionControlRuntime, *, watch: bool = True) -> None:
    cfg = runtime.config
    outcome = await asyncio.to_thread(runtime.start, watch=watch)
    if not outcome.ok:
        logger.error("initial build failed: %s", outcome.error)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    tasks = [
        asyncio.create_task(run_http_server(runtime, host=cfg.http_host, port=cfg.http_port, stop_event=stop)),
        asyncio.create_task(WebSocketRelay(runtime).run(host=cfg.http_host, port=cfg.ws_port, stop_event=stop)),
    ]
    if watch:
        tasks.append(asyncio.create_task(_supervise_watcher(runtime, stop)))
    try:
        await asyncio.gather(*tasks)
    finally:
        stop.set()
        runtime.stop()
        logger.info("mission control stopped")


async def serve_stdio(runtime: MissionControlRuntime, *, watch: bool = True) -> None:
    outcome = await asyncio.to_thread(runtime.start, watch=watch)
    if not outcome.ok:
        logger.error("initial build failed: %s", outcome.error)
    svc = MissionControlService(runtime)
    app = NDJSONService(name="mission-control", version=VERSION, ops=svc.ops())
    try:
        await app.run_stdio()
    finally:
        runtime.stop()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mission-control")
    p.add_argument("--workspace", default=None, help="Workspace root (default: $MISSION_CONTROL_WORKSPACE)")
    p.add_argument("--stdio", action="store_true", help="Serve NDJSON ops on stdin/stdout instead of HTTP")
    p.add_argument("--no-watch", action="store_true", help="Build on demand only")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=os.environ.get("MC_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    workspace = Path(args.workspace).expanduser() if args.workspace else None
    runtime = MissionControlRuntime(load_config(workspace))
    logger.info("mission control %s for %s", VERSION, runtime.config.workspace)
    if args.stdio:
        asyncio.run(serve_stdio(runtime, watch=not args.no_watch))
    else:
        asyncio.run(serve(runtime, watch=not args.no_watch))


if __name__ == "__main__":
    main()
