"""PubSubSubscription — pull/push subscription handle."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from gcloud_pubsub.base import Transport
from gcloud_pubsub.errors import DecodeError
from gcloud_pubsub.events import PubSubPullEvent
from gcloud_pubsub.topic import PubSubTopic

logger = structlog.get_logger()


def push_config(endpoint: str | None) -> dict[str, Any]:
    """Build a ``PushConfig`` object; an empty one means pull delivery."""
    return {"pushEndpoint": endpoint} if endpoint else {}


class PubSubSubscription:
    """Live handle on a subscription that exists in the service.

    Implements the Subscription protocol.  The subscription is in push mode
    while it has an endpoint and in pull mode otherwise; the only way to
    switch is :meth:`update_push_configuration`.

    Pulling from a push subscription is allowed by the service, and not
    prevented here, but the push endpoint will compete for the same messages.
    """

    def __init__(
        self,
        transport: Transport,
        absolute_name: str,
        topic: PubSubTopic,
        endpoint: str | None = None,
    ) -> None:
        self._transport = transport
        self._absolute_name = absolute_name
        self._topic = topic
        self._endpoint = endpoint or None

    @classmethod
    def from_api(
        cls, transport: Transport, resource: Mapping[str, Any]
    ) -> PubSubSubscription:
        """Build a handle from a ``Subscription`` resource returned by the API."""
        name = resource.get("name")
        topic = resource.get("topic")
        if not isinstance(name, str) or not isinstance(topic, str):
            msg = f"Malformed subscription resource: {resource!r}"
            raise DecodeError(msg)
        config = resource.get("pushConfig") or {}
        endpoint = config.get("pushEndpoint") if isinstance(config, Mapping) else None
        return cls(transport, name, PubSubTopic(transport, topic), endpoint)

    @property
    def name(self) -> str:
        return self._absolute_name.rsplit("/", 1)[-1]

    @property
    def project(self) -> str:
        return self._absolute_name.split("/")[1]

    @property
    def absolute_name(self) -> str:
        return self._absolute_name

    @property
    def topic(self) -> PubSubTopic:
        return self._topic

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def is_push(self) -> bool:
        return self._endpoint is not None

    @property
    def is_pull(self) -> bool:
        return self._endpoint is None

    async def update_push_configuration(self, endpoint: str | None) -> None:
        """Switch to push delivery to *endpoint*, or to pull if it is ``None``.

        Local state only changes once the service accepted the update.
        """
        new_endpoint = str(endpoint) if endpoint else None
        await self._transport.send(
            "POST",
            f"{self._absolute_name}:modifyPushConfig",
            {"pushConfig": push_config(new_endpoint)},
        )
        self._endpoint = new_endpoint
        logger.info(
            "pubsub.push_config_updated",
            subscription=self._absolute_name,
            endpoint=new_endpoint,
            mode="push" if new_endpoint else "pull",
        )

    async def delete(self) -> None:
        await self._transport.send("DELETE", self._absolute_name)
        logger.info("pubsub.subscription_deleted", subscription=self._absolute_name)

    async def pull(
        self, wait: bool = True, timeout: float | None = None
    ) -> PubSubPullEvent | None:
        """Pull one message.

        With *wait* the service holds the request until a message arrives or
        its own deadline passes.  Without it, ``None`` is returned right away
        when nothing is pending.  *timeout* bounds the wait locally: on expiry
        the request is cancelled and ``None`` is returned.
        """
        if self.is_push:
            logger.warning(
                "pubsub.pull_on_push_subscription",
                subscription=self._absolute_name,
                endpoint=self._endpoint,
            )

        request = self._transport.send(
            "POST",
            f"{self._absolute_name}:pull",
            {"returnImmediately": not wait, "maxMessages": 1},
        )
        if timeout is None:
            response = await request
        else:
            try:
                response = await asyncio.wait_for(request, timeout)
            except TimeoutError:
                logger.debug(
                    "pubsub.pull_timed_out",
                    subscription=self._absolute_name,
                    timeout=timeout,
                )
                return None

        received = response.get("receivedMessages") or []
        if not received:
            return None
        return PubSubPullEvent.from_received(
            self._transport, self._absolute_name, received[0]
        )

    def __repr__(self) -> str:
        mode = f"push -> {self._endpoint}" if self._endpoint else "pull"
        return f"PubSubSubscription({self._absolute_name!r}, {mode})"
