"""Shared fixtures: an in-memory stand-in for the Pub/Sub REST API."""

from __future__ import annotations

import itertools
from collections import deque
from collections.abc import Mapping
from typing import Any

import pytest

from gcloud_pubsub.client import PubSubClient
from gcloud_pubsub.config.models import PubSubConfig
from gcloud_pubsub.errors import NotFoundError, TransportError

PROJECT = "proj"


class FakeTransport:
    """Implements the Transport protocol against in-memory topics/subscriptions."""

    def __init__(self) -> None:
        self.topics: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.backlog: dict[str, deque[dict[str, Any]]] = {}
        self.outstanding: dict[str, str] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self._ids = itertools.count(1)

    async def send(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append((method, path, body))
        resource, _, verb = path.partition(":")
        parts = resource.split("/")

        if len(parts) == 3:
            return self._list(parts[2], params or {})
        if len(parts) == 5 and parts[4] == "subscriptions":
            topic = "/".join(parts[:4])
            self._require(self.topics, topic)
            names = [
                n for n, s in self.subscriptions.items() if s["topic"] == topic
            ]
            return {"subscriptions": names}

        store = self.topics if parts[2] == "topics" else self.subscriptions
        if method == "PUT":
            if resource in store:
                raise TransportError("already exists", status_code=409)
            if store is self.subscriptions:
                self._require(self.topics, body["topic"])
                self.backlog[resource] = deque()
            store[resource] = {"name": resource, **(body or {})}
            return dict(store[resource])
        if method == "GET":
            return dict(self._require(store, resource))
        if method == "DELETE":
            self._require(store, resource)
            del store[resource]
            return {}
        return getattr(self, f"_{verb}")(resource, body or {})

    @staticmethod
    def _require(store: dict[str, Any], name: str) -> dict[str, Any]:
        if name not in store:
            raise NotFoundError(f"{name} not found", status_code=404)
        return store[name]

    def _list(self, kind: str, params: Mapping[str, Any]) -> dict[str, Any]:
        store = self.topics if kind == "topics" else self.subscriptions
        names = sorted(store)
        start = int(params.get("pageToken") or 0)
        size = int(params.get("pageSize") or 50)
        page = [dict(store[n]) for n in names[start : start + size]]
        result: dict[str, Any] = {kind: page}
        if start + size < len(names):
            result["nextPageToken"] = str(start + size)
        return result

    def _publish(self, topic: str, body: Mapping[str, Any]) -> dict[str, Any]:
        self._require(self.topics, topic)
        ids = []
        for message in body["messages"]:
            message_id = str(next(self._ids))
            ids.append(message_id)
            for name, sub in self.subscriptions.items():
                if sub["topic"] == topic:
                    self.backlog[name].append({**message, "messageId": message_id})
        return {"messageIds": ids}

    def _pull(self, subscription: str, body: Mapping[str, Any]) -> dict[str, Any]:
        self._require(self.subscriptions, subscription)
        queue = self.backlog[subscription]
        if not queue:
            return {}
        message = queue.popleft()
        ack_id = f"ack-{message['messageId']}"
        self.outstanding[ack_id] = subscription
        return {"receivedMessages": [{"ackId": ack_id, "message": message}]}

    def _acknowledge(self, subscription: str, body: Mapping[str, Any]) -> dict[str, Any]:
        for ack_id in body["ackIds"]:
            if self.outstanding.pop(ack_id, None) != subscription:
                raise TransportError(f"invalid ack id {ack_id}", status_code=400)
        return {}

    def _modifyPushConfig(  # noqa: N802
        self, subscription: str, body: Mapping[str, Any]
    ) -> dict[str, Any]:
        self._require(self.subscriptions, subscription)["pushConfig"] = body["pushConfig"]
        return {}


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def pubsub(fake_transport: FakeTransport) -> PubSubClient:
    return PubSubClient.from_transport(fake_transport, PROJECT)


@pytest.fixture
def production_config() -> PubSubConfig:
    """Explicit config so a PUBSUB_EMULATOR_HOST in the environment is ignored."""
    return PubSubConfig()
