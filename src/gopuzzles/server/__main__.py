"""GoPuzzles JSON-lines server entry point.

Usage: python -m gopuzzles.server

Reads JSON requests from stdin (one per line), writes JSON responses to stdout.
All logging goes to stderr to keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Optional

from gopuzzles.config.settings import Settings
from gopuzzles.errors import TrackerError

from .handler import ServerHandler
from .protocol import Notification, Response

logger = logging.getLogger("gopuzzles.server")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def handle_line(handler: ServerHandler, line_str: str) -> Response:
    try:
        msg = json.loads(line_str)
    except json.JSONDecodeError as e:
        return Response(id=0, error=f"Invalid JSON: {e}", code="invalid_argument")

    req_id = msg.get("id", 0) if isinstance(msg, dict) else 0
    try:
        result = await handler.dispatch(msg)
        return Response(id=req_id, result=result)
    except TrackerError as e:
        logger.warning("%s failed: %s", msg.get("method"), e)
        return Response(id=req_id, error=str(e), code=e.code)
    except Exception as e:
        logger.exception("%s failed", msg.get("method"))
        return Response(id=req_id, error=str(e), code="internal")


async def main(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings.load()
    configure_logging(settings.log_level)
    loop = asyncio.get_running_loop()

    def write_line(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def write_notification(notification: Notification) -> None:
        write_line(notification.to_json_line())

    handler = ServerHandler(settings=settings, write_notification=write_notification)

    logger.info("gopuzzles-server: ready (db=%s)", settings.db_path)

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    while True:
        line = await reader.readline()
        if not line:
            break  # stdin closed

        line_str = line.decode("utf-8", errors="replace").strip()
        if not line_str:
            continue

        resp = await handle_line(handler, line_str)
        write_line(resp.to_json_line())


if __name__ == "__main__":
    asyncio.run(main())
