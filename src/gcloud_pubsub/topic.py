"""PubSubTopic — publishing handle for a Pub/Sub topic."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from gcloud_pubsub.base import Transport
from gcloud_pubsub.message import Message

logger = structlog.get_logger()


class PubSubTopic:
    """Live handle on a topic that exists in the service.

    Implements the Topic protocol.  The handle holds no state besides the
    name; once the topic is deleted every remote operation on it fails with
    :class:`~gcloud_pubsub.errors.NotFoundError`.
    """

    def __init__(self, transport: Transport, absolute_name: str) -> None:
        self._transport = transport
        self._absolute_name = absolute_name

    @property
    def name(self) -> str:
        return self._absolute_name.rsplit("/", 1)[-1]

    @property
    def project(self) -> str:
        # Subscriptions of a deleted topic report the placeholder "_deleted-topic_"
        parts = self._absolute_name.split("/")
        return parts[1] if len(parts) == 4 else ""

    @property
    def absolute_name(self) -> str:
        return self._absolute_name

    async def delete(self) -> None:
        await self._transport.send("DELETE", self._absolute_name)
        logger.info("pubsub.topic_deleted", topic=self._absolute_name)

    async def publish(self, message: Message) -> None:
        """Publish *message* to this topic."""
        await self._transport.send(
            "POST",
            f"{self._absolute_name}:publish",
            {"messages": [message.to_api()]},
        )
        logger.debug(
            "pubsub.message_published",
            topic=self._absolute_name,
            size=len(message.body),
        )

    async def publish_string(
        self, text: str, attributes: Mapping[str, str] | None = None
    ) -> None:
        await self.publish(Message.with_string(text, attributes))

    async def publish_bytes(
        self, data: bytes, attributes: Mapping[str, str] | None = None
    ) -> None:
        await self.publish(Message.with_bytes(data, attributes))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PubSubTopic):
            return NotImplemented
        return self._absolute_name == other._absolute_name

    def __hash__(self) -> int:
        return hash(self._absolute_name)

    def __repr__(self) -> str:
        return f"PubSubTopic({self._absolute_name!r})"
