"""Pull and push events delivered by a subscription."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from gcloud_pubsub.base import Transport
from gcloud_pubsub.errors import DecodeError, InvalidNameError
from gcloud_pubsub.message import Message
from gcloud_pubsub.naming import ResourceKind, project_of, resolve_name

logger = structlog.get_logger()


class PubSubPullEvent:
    """A message received by pulling, plus the handle used to acknowledge it.

    Implements the PullEvent protocol.  Acknowledging is done at most once:
    after a successful :meth:`acknowledge` further calls are no-ops, and
    calls made while one is in flight wait for its outcome.  A failed
    acknowledge leaves the event unacknowledged so it can be retried.
    """

    def __init__(
        self,
        transport: Transport,
        subscription: str,
        ack_id: str,
        message: Message,
    ) -> None:
        self._transport = transport
        self._subscription = subscription
        self._ack_id = ack_id
        self._message = message
        self._acknowledged = False
        self._pending_ack: asyncio.Task[None] | None = None

    @classmethod
    def from_received(
        cls,
        transport: Transport,
        subscription: str,
        received: Mapping[str, Any],
    ) -> PubSubPullEvent:
        """Build an event from one ``ReceivedMessage`` of a pull response."""
        ack_id = received.get("ackId")
        payload = received.get("message")
        if not isinstance(ack_id, str) or not isinstance(payload, Mapping):
            msg = f"Malformed pull response for {subscription}: {received!r}"
            raise DecodeError(msg)
        return cls(transport, subscription, ack_id, Message.from_api(payload))

    @property
    def message(self) -> Message:
        return self._message

    @property
    def ack_id(self) -> str:
        return self._ack_id

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    async def acknowledge(self) -> None:
        if self._acknowledged:
            logger.debug(
                "pubsub.already_acknowledged",
                subscription=self._subscription,
                message_id=self._message.message_id,
            )
            return
        # Overlapping callers share one remote call
        pending = self._pending_ack
        if pending is None:
            pending = asyncio.create_task(self._send_acknowledge())
            self._pending_ack = pending
        try:
            await pending
        finally:
            if self._pending_ack is pending:
                self._pending_ack = None

    async def _send_acknowledge(self) -> None:
        await self._transport.send(
            "POST",
            f"{self._subscription}:acknowledge",
            {"ackIds": [self._ack_id]},
        )
        self._acknowledged = True
        logger.debug(
            "pubsub.acknowledged",
            subscription=self._subscription,
            message_id=self._message.message_id,
        )

    def __repr__(self) -> str:
        return (
            f"PubSubPullEvent(subscription={self._subscription!r}, "
            f"message_id={self._message.message_id!r}, "
            f"acknowledged={self._acknowledged})"
        )


@dataclass(frozen=True, slots=True)
class PushEvent:
    """A message delivered to a push endpoint.

    Use :meth:`from_json` on the body of the HTTP request the service sends
    to the endpoint.  Acknowledgment is done by the HTTP response status,
    which is up to the receiving server.
    """

    message: Message
    subscription_name: str

    @property
    def project(self) -> str:
        return project_of(self.subscription_name)

    @classmethod
    def from_json(cls, payload: str | bytes | Mapping[str, Any]) -> PushEvent:
        """Decode a push delivery body.

        Expected shape::

            {
                "message": {
                    "data": "<base64>",
                    "attributes": {...},
                    "messageId": "...",
                    "publishTime": "..."
                },
                "subscription": "projects/<project>/subscriptions/<name>"
            }

        ``data`` must be standard base64; a plain-text ``data`` field is
        rejected rather than guessed at.  A missing ``data`` is an empty body.

        Raises :class:`DecodeError` for anything that does not match.
        """
        if isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except (ValueError, UnicodeDecodeError) as exc:
                msg = f"Push payload is not valid JSON: {exc}"
                raise DecodeError(msg) from exc
        else:
            data = payload

        if not isinstance(data, Mapping):
            msg = f"Push payload must be a JSON object, got {type(data).__name__}"
            raise DecodeError(msg)

        message = data.get("message")
        if not isinstance(message, Mapping):
            msg = "Push payload is missing the 'message' object"
            raise DecodeError(msg)

        subscription = data.get("subscription")
        if not isinstance(subscription, str):
            msg = "Push payload is missing the 'subscription' name"
            raise DecodeError(msg)
        if not subscription.startswith("projects/"):
            msg = f"Push payload subscription '{subscription}' is not an absolute name"
            raise DecodeError(msg)
        try:
            resolve_name(subscription, "", ResourceKind.SUBSCRIPTION)
        except InvalidNameError as exc:
            raise DecodeError(str(exc)) from exc

        return cls(message=Message.from_api(message), subscription_name=subscription)
