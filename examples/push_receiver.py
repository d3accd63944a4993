#!/usr/bin/env python3
"""Runnable demo: a push endpoint that decodes Pub/Sub deliveries.

Point a push subscription at it:

    python examples/push_receiver.py 8080
    pubsub -p my-project push-config my-sub --endpoint http://<host>:8080/push

Any 2xx response acknowledges the message; anything else makes the service
redeliver it later.
"""

from __future__ import annotations

import asyncio
import sys
from contextlib import suppress

import structlog
from rich.console import Console

from gcloud_pubsub import DecodeError, PushEvent

logger = structlog.get_logger()
console = Console()

_REASONS = {204: "No Content", 400: "Bad Request", 404: "Not Found", 405: "Method Not Allowed"}


async def _respond(writer: asyncio.StreamWriter, status: int) -> None:
    writer.write(
        f"HTTP/1.1 {status} {_REASONS.get(status, 'Unknown')}\r\n"
        "Content-Length: 0\r\n"
        "Connection: close\r\n"
        "\r\n".encode()
    )
    await writer.drain()


async def _handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    try:
        request_line = await asyncio.wait_for(reader.readline(), timeout=5.0)
        parts = request_line.decode("utf-8", errors="replace").split()
        headers: dict[str, str] = {}
        while (line := await reader.readline()) not in (b"\r\n", b"\n", b""):
            name, _, value = line.decode("latin-1").partition(":")
            headers[name.strip().lower()] = value.strip()

        if len(parts) < 2 or parts[1] != "/push":
            await _respond(writer, 404)
            return
        if parts[0] != "POST":
            await _respond(writer, 405)
            return

        body = await reader.readexactly(int(headers.get("content-length", "0")))
        try:
            event = PushEvent.from_json(body)
        except DecodeError as exc:
            logger.warning("push_receiver.bad_payload", error=str(exc))
            await _respond(writer, 400)
            return

        console.print(
            f"[cyan]{event.subscription_name}[/cyan] "
            f"{event.message.message_id or '-'}: {event.message.as_bytes!r}"
        )
        for key, value in event.message.attributes.items():
            console.print(f"  {key}={value}")
        await _respond(writer, 204)
    finally:
        with suppress(ConnectionError):
            writer.close()
            await writer.wait_closed()


async def main(port: int) -> None:
    server = await asyncio.start_server(_handle, host="0.0.0.0", port=port)  # noqa: S104
    console.print(f"[bold]Listening for pushes on :{port}/push[/bold]")
    async with server:
        await server.serve_forever()


if __name__ == "__main__":
    asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else 8080))
