#!/usr/bin/env python3
"""Runnable demo: publish and pull through a local Pub/Sub emulator.

Prerequisites:
    gcloud beta emulators pubsub start --host-port=localhost:8085
    PUBSUB_EMULATOR_HOST=localhost:8085 python examples/emulator_demo.py
"""

from __future__ import annotations

import asyncio
import sys

import httpx
from rich.console import Console

from gcloud_pubsub import PubSubClient, PubSubConfig

console = Console()


async def main() -> None:
    config = PubSubConfig.from_env()
    if not config.emulator_host:
        console.print("[red]Set PUBSUB_EMULATOR_HOST first[/red]")
        sys.exit(1)

    async with httpx.AsyncClient(timeout=config.timeout_seconds) as http:
        pubsub = PubSubClient(http, config.project_id or "demo-project", config=config)

        # 1. Create a topic and a pull subscription on it
        topic = await pubsub.create_topic("demo-topic")
        sub = await pubsub.create_subscription("demo-sub", "demo-topic")
        console.print(f"[bold]Created[/bold] {topic.absolute_name} -> {sub.absolute_name}")

        try:
            # 2. Publish a few messages
            for i in range(3):
                await topic.publish_string(f"message {i}", {"seq": str(i)})

            # 3. Pull and acknowledge until the backlog is drained
            while (event := await sub.pull(wait=False)) is not None:
                console.print(
                    f"[cyan]{event.message.attributes.get('seq')}[/cyan] "
                    f"{event.message.as_string}"
                )
                await event.acknowledge()

            # 4. Show what exists
            async for t in pubsub.list_topics():
                console.print(f"topic: {t.name}")
            async for s in pubsub.list_subscriptions("demo-topic"):
                console.print(f"subscription: {s.name} ({'push' if s.is_push else 'pull'})")
        finally:
            await sub.delete()
            await topic.delete()


if __name__ == "__main__":
    asyncio.run(main())
