"""Typer CLI for working with Pub/Sub topics and subscriptions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.table import Table

from gcloud_pubsub.client import PubSubClient
from gcloud_pubsub.config.loader import load_config
from gcloud_pubsub.config.models import PubSubConfig
from gcloud_pubsub.errors import DecodeError, PubSubError
from gcloud_pubsub.transport import RestTransport

console = Console()
app = typer.Typer(name="pubsub", help="Cloud Pub/Sub CLI")
topics_app = typer.Typer(name="topics", help="Topic operations")
subscriptions_app = typer.Typer(name="subscriptions", help="Subscription operations")
app.add_typer(topics_app)
app.add_typer(subscriptions_app)


def _load(
    config_path: str | None,
    project: str | None,
    emulator_host: str | None,
    access_token: str | None,
) -> PubSubConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    try:
        config = load_config(config_path)
        overrides = {
            "project_id": project,
            "emulator_host": emulator_host,
            "access_token": access_token,
        }
        return PubSubConfig.model_validate(
            {
                **config.model_dump(),
                **{k: v for k, v in overrides.items() if v is not None},
            }
        )
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _http_client(config: PubSubConfig) -> httpx.AsyncClient:
    headers: dict[str, str] = {}
    if config.access_token is not None:
        headers["Authorization"] = f"Bearer {config.access_token.get_secret_value()}"
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(config.timeout_seconds),
    )


def _run(ctx: typer.Context, action: Callable[[PubSubClient], Awaitable[None]]) -> None:
    config: PubSubConfig = ctx.obj
    if not config.project_id:
        console.print(
            "[red]No project set:[/red] use --project, the config file, "
            "or PUBSUB_PROJECT_ID"
        )
        raise typer.Exit(1)

    async def _main() -> None:
        async with _http_client(config) as http:
            client = PubSubClient(http, config.project_id, config=config)
            await action(client)

    try:
        asyncio.run(_main())
    except PubSubError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _parse_attributes(pairs: list[str] | None) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"Attribute '{pair}' must be KEY=VALUE"
            raise typer.BadParameter(msg)
        attributes[key] = value
    return attributes


@app.callback()
def main(
    ctx: typer.Context,
    config_path: str | None = typer.Option(None, "--config", help="Config YAML"),
    project: str | None = typer.Option(None, "--project", "-p", help="Project id"),
    emulator_host: str | None = typer.Option(
        None, "--emulator-host", help="Emulator host[:port]"
    ),
    access_token: str | None = typer.Option(
        None,
        "--access-token",
        envvar="PUBSUB_ACCESS_TOKEN",
        help="OAuth2 access token sent as a Bearer header",
    ),
) -> None:
    """Manage topics and subscriptions against Pub/Sub or a local emulator."""
    ctx.obj = _load(config_path, project, emulator_host, access_token)


# -- Topics --------------------------------------------------------------------


@topics_app.command("create")
def create_topic(
    ctx: typer.Context, name: str = typer.Argument(..., help="Topic name")
) -> None:
    """Create a topic."""

    async def _create(client: PubSubClient) -> None:
        topic = await client.create_topic(name)
        console.print(f"[green]Created[/green] {topic.absolute_name}")

    _run(ctx, _create)


@topics_app.command("delete")
def delete_topic(
    ctx: typer.Context, name: str = typer.Argument(..., help="Topic name")
) -> None:
    """Delete a topic."""

    async def _delete(client: PubSubClient) -> None:
        await client.delete_topic(name)
        console.print(f"[green]Deleted[/green] {name}")

    _run(ctx, _delete)


@topics_app.command("list")
def list_topics(ctx: typer.Context) -> None:
    """List all topics of the project."""

    async def _list(client: PubSubClient) -> None:
        table = Table(title=f"Topics in {client.project}")
        table.add_column("Name", style="cyan")
        table.add_column("Absolute name")
        async for topic in client.list_topics():
            table.add_row(topic.name, topic.absolute_name)
        console.print(table)

    _run(ctx, _list)


@app.command()
def publish(
    ctx: typer.Context,
    topic: str = typer.Argument(..., help="Topic name"),
    text: str = typer.Argument(..., help="Message body"),
    attr: list[str] | None = typer.Option(
        None, "--attr", "-a", help="Message attribute KEY=VALUE (repeatable)"
    ),
) -> None:
    """Publish a text message to a topic."""
    attributes = _parse_attributes(attr)

    async def _publish(client: PubSubClient) -> None:
        handle = await client.lookup_topic(topic)
        await handle.publish_string(text, attributes)
        console.print(f"[green]Published[/green] to {handle.absolute_name}")

    _run(ctx, _publish)


# -- Subscriptions -------------------------------------------------------------


@subscriptions_app.command("create")
def create_subscription(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Subscription name"),
    topic: str = typer.Argument(..., help="Topic to subscribe to"),
    endpoint: str | None = typer.Option(
        None, "--endpoint", help="Push endpoint URL (omit for a pull subscription)"
    ),
) -> None:
    """Create a pull or push subscription."""

    async def _create(client: PubSubClient) -> None:
        sub = await client.create_subscription(name, topic, endpoint=endpoint)
        mode = "push" if sub.is_push else "pull"
        console.print(f"[green]Created[/green] {sub.absolute_name} ({mode})")

    _run(ctx, _create)


@subscriptions_app.command("delete")
def delete_subscription(
    ctx: typer.Context, name: str = typer.Argument(..., help="Subscription name")
) -> None:
    """Delete a subscription."""

    async def _delete(client: PubSubClient) -> None:
        await client.delete_subscription(name)
        console.print(f"[green]Deleted[/green] {name}")

    _run(ctx, _delete)


@subscriptions_app.command("list")
def list_subscriptions(
    ctx: typer.Context,
    topic: str | None = typer.Option(None, "--topic", help="Only this topic's"),
) -> None:
    """List subscriptions, optionally only those of one topic."""

    async def _list(client: PubSubClient) -> None:
        table = Table(title=f"Subscriptions in {client.project}")
        table.add_column("Name", style="cyan")
        table.add_column("Topic")
        table.add_column("Mode")
        table.add_column("Endpoint")
        async for sub in client.list_subscriptions(topic):
            mode = "push" if sub.is_push else "pull"
            table.add_row(sub.name, sub.topic.name, mode, sub.endpoint or "")
        console.print(table)

    _run(ctx, _list)


@app.command()
def pull(
    ctx: typer.Context,
    subscription: str = typer.Argument(..., help="Subscription name"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for a message"),
    ack: bool = typer.Option(True, "--ack/--no-ack", help="Acknowledge the message"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Give up waiting after this many seconds"
    ),
) -> None:
    """Pull one message from a subscription."""

    async def _pull(client: PubSubClient) -> None:
        sub = await client.lookup_subscription(subscription)
        event = await sub.pull(wait=wait, timeout=timeout)
        if event is None:
            console.print("[yellow]No message available[/yellow]")
            return
        message = event.message
        try:
            body = message.as_string
        except DecodeError:
            body = repr(message.as_bytes)
        console.print(f"[cyan]{message.message_id or '-'}[/cyan] {body}")
        for key, value in message.attributes.items():
            console.print(f"  {key}={value}")
        if ack:
            await event.acknowledge()
            console.print("[green]Acknowledged[/green]")

    _run(ctx, _pull)


@app.command("push-config")
def push_config(
    ctx: typer.Context,
    subscription: str = typer.Argument(..., help="Subscription name"),
    endpoint: str | None = typer.Option(
        None, "--endpoint", help="Push endpoint URL (omit to switch to pull)"
    ),
) -> None:
    """Switch a subscription between push and pull delivery."""

    async def _update(client: PubSubClient) -> None:
        sub = await client.lookup_subscription(subscription)
        await sub.update_push_configuration(endpoint)
        mode = f"push -> {sub.endpoint}" if sub.is_push else "pull"
        console.print(f"[green]Updated[/green] {sub.absolute_name}: {mode}")

    _run(ctx, _update)


@app.command()
def ping(ctx: typer.Context) -> None:
    """Wait until the service (or emulator) root answers."""
    config: PubSubConfig = ctx.obj

    async def _ping() -> None:
        async with _http_client(config) as http:
            transport = RestTransport(http, config.effective_root_url)
            await transport.wait_until_ready()

    try:
        asyncio.run(_ping())
    except httpx.HTTPError as exc:
        console.print(f"[red]Unreachable:[/red] {config.effective_root_url} ({exc})")
        raise typer.Exit(1) from exc
    console.print(f"[green]Ready[/green] {config.effective_root_url}")


if __name__ == "__main__":
    app()
