"""PubSubClient — entry point for topics and subscriptions of one project."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog

from gcloud_pubsub.base import Transport
from gcloud_pubsub.config.models import PubSubConfig
from gcloud_pubsub.errors import DecodeError, InvalidNameError, NotFoundError
from gcloud_pubsub.naming import ResourceKind, resolve_name
from gcloud_pubsub.paging import PageFetcher, ResourcePage
from gcloud_pubsub.subscription import PubSubSubscription, push_config
from gcloud_pubsub.topic import PubSubTopic
from gcloud_pubsub.transport import SCOPES, RestTransport

logger = structlog.get_logger()

T = TypeVar("T")


class PubSubClient:
    """Access to Cloud Pub/Sub using an authenticated HTTP client.

    Implements the PubSub protocol.  Topics and subscriptions are addressed
    by relative names (``my-topic``), resolved against *project*, or by
    absolute names (``projects/<project>/topics/my-topic``).

    The service root is fixed at construction: the emulator named by
    ``config.emulator_host`` if set, otherwise the production endpoint.
    Without an explicit *config* it is read from ``PUBSUB_EMULATOR_HOST``.

    *http_client* must carry credentials for :attr:`SCOPES`.  It is borrowed,
    never closed; the caller owns its lifetime.
    """

    SCOPES = SCOPES

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        project: str,
        *,
        config: PubSubConfig | None = None,
    ) -> None:
        config = config or PubSubConfig.from_env()
        transport = RestTransport(http_client, config.effective_root_url)
        self._setup(transport, project, config.page_size)
        if config.emulator_host:
            logger.info(
                "pubsub.client_created",
                project=project,
                emulator_host=config.emulator_host,
            )
        else:
            logger.info("pubsub.client_created", project=project)

    @classmethod
    def from_transport(
        cls, transport: Transport, project: str, *, page_size: int = 50
    ) -> PubSubClient:
        """Build a client over any Transport implementation."""
        client = cls.__new__(cls)
        client._setup(transport, project, page_size)
        return client

    def _setup(self, transport: Transport, project: str, page_size: int) -> None:
        if not project or "/" in project:
            msg = f"Invalid project id '{project}'"
            raise InvalidNameError(msg)
        self._transport = transport
        self._project = project
        self._page_size = page_size

    @property
    def project(self) -> str:
        return self._project

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def root_url(self) -> str | None:
        return getattr(self._transport, "root_url", None)

    def _topic_name(self, name: str) -> str:
        return resolve_name(name, self._project, ResourceKind.TOPIC)

    def _subscription_name(self, name: str) -> str:
        return resolve_name(name, self._project, ResourceKind.SUBSCRIPTION)

    # -- Topics ----------------------------------------------------------------

    async def create_topic(self, name: str) -> PubSubTopic:
        absolute = self._topic_name(name)
        resp = await self._transport.send("PUT", absolute, {})
        logger.info("pubsub.topic_created", topic=absolute)
        return PubSubTopic(self._transport, resp.get("name", absolute))

    async def delete_topic(self, name: str) -> None:
        absolute = self._topic_name(name)
        await self._transport.send("DELETE", absolute)
        logger.info("pubsub.topic_deleted", topic=absolute)

    async def lookup_topic(self, name: str) -> PubSubTopic:
        absolute = self._topic_name(name)
        resp = await self._transport.send("GET", absolute)
        return PubSubTopic(self._transport, resp.get("name", absolute))

    async def _fetch_topics(
        self, page_token: str | None, page_size: int
    ) -> tuple[list[PubSubTopic], str | None]:
        resp = await self._transport.send(
            "GET",
            f"projects/{self._project}/topics",
            params={"pageSize": page_size, "pageToken": page_token},
        )
        topics = [
            PubSubTopic(self._transport, _resource_name(t))
            for t in resp.get("topics") or []
        ]
        return topics, resp.get("nextPageToken")

    async def page_topics(
        self, page_size: int | None = None
    ) -> ResourcePage[PubSubTopic]:
        """Return the first page of topics; use ``next()`` to move on."""
        return await ResourcePage.first(
            self._fetch_topics, page_size or self._page_size
        )

    def list_topics(self) -> AsyncIterator[PubSubTopic]:
        """Iterate over all topics, fetching pages lazily.

        Every call starts a new iteration from the first page.
        """
        return _iterate(self.page_topics)

    # -- Subscriptions ---------------------------------------------------------

    async def create_subscription(
        self, name: str, topic: str, endpoint: str | None = None
    ) -> PubSubSubscription:
        """Create a subscription on *topic*; push if *endpoint* is given, else pull."""
        absolute = self._subscription_name(name)
        body: dict[str, Any] = {"topic": self._topic_name(topic)}
        if endpoint:
            body["pushConfig"] = push_config(str(endpoint))
        resp = await self._transport.send("PUT", absolute, body)
        logger.info(
            "pubsub.subscription_created",
            subscription=absolute,
            topic=body["topic"],
            mode="push" if endpoint else "pull",
        )
        return PubSubSubscription.from_api(
            self._transport, {**body, "name": absolute, **resp}
        )

    async def delete_subscription(self, name: str) -> None:
        absolute = self._subscription_name(name)
        await self._transport.send("DELETE", absolute)
        logger.info("pubsub.subscription_deleted", subscription=absolute)

    async def lookup_subscription(self, name: str) -> PubSubSubscription:
        absolute = self._subscription_name(name)
        resp = await self._transport.send("GET", absolute)
        return PubSubSubscription.from_api(self._transport, resp)

    async def _fetch_subscriptions(
        self, page_token: str | None, page_size: int
    ) -> tuple[list[PubSubSubscription], str | None]:
        resp = await self._transport.send(
            "GET",
            f"projects/{self._project}/subscriptions",
            params={"pageSize": page_size, "pageToken": page_token},
        )
        subscriptions = [
            PubSubSubscription.from_api(self._transport, s)
            for s in resp.get("subscriptions") or []
        ]
        return subscriptions, resp.get("nextPageToken")

    def _topic_subscriptions_fetcher(
        self, topic: str
    ) -> PageFetcher[PubSubSubscription]:
        """Page through the subscriptions attached to one topic.

        The topic listing only returns names, so each one is looked up to
        get its topic and push configuration.  The lookups of a page run
        concurrently; the first failure cancels the rest and is raised.
        """

        async def _fetch(
            page_token: str | None, page_size: int
        ) -> tuple[list[PubSubSubscription], str | None]:
            resp = await self._transport.send(
                "GET",
                f"{topic}/subscriptions",
                params={"pageSize": page_size, "pageToken": page_token},
            )
            names = resp.get("subscriptions") or []
            try:
                async with asyncio.TaskGroup() as group:
                    lookups = [
                        group.create_task(self._lookup_if_exists(n)) for n in names
                    ]
            except ExceptionGroup as failed:
                raise failed.exceptions[0] from None
            found = [t.result() for t in lookups if t.result() is not None]
            return found, resp.get("nextPageToken")

        return _fetch

    async def _lookup_if_exists(self, name: str) -> PubSubSubscription | None:
        try:
            return await self.lookup_subscription(name)
        except NotFoundError:
            # Deleted between the listing and the lookup
            logger.debug("pubsub.subscription_vanished", subscription=name)
            return None

    async def page_subscriptions(
        self, topic: str | None = None, page_size: int | None = None
    ) -> ResourcePage[PubSubSubscription]:
        """Return the first page of subscriptions, optionally only those of *topic*."""
        size = page_size or self._page_size
        if topic is None:
            return await ResourcePage.first(self._fetch_subscriptions, size)
        fetch = self._topic_subscriptions_fetcher(self._topic_name(topic))
        return await ResourcePage.first(fetch, size)

    def list_subscriptions(
        self, query: str | None = None
    ) -> AsyncIterator[PubSubSubscription]:
        """Iterate over subscriptions; *query* names a topic to restrict them to."""
        if query is not None:
            self._topic_name(query)
        return _iterate(lambda: self.page_subscriptions(query))

    def __repr__(self) -> str:
        return f"PubSubClient(project={self._project!r}, root_url={self.root_url!r})"


def _resource_name(resource: Any) -> str:
    if isinstance(resource, dict) and isinstance(resource.get("name"), str):
        return resource["name"]
    msg = f"Malformed resource in listing: {resource!r}"
    raise DecodeError(msg)


async def _iterate(
    first_page: Callable[[], Awaitable[ResourcePage[T]]],
) -> AsyncIterator[T]:
    page = await first_page()
    async for item in page:
        yield item
