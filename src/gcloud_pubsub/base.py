"""Transport-agnostic Pub/Sub interfaces.

Defines the protocols callers program against.  Each protocol has exactly
one concrete implementation in this package; tests and applications may
substitute their own (most usefully for :class:`Transport`).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from gcloud_pubsub.message import Message

T_co = TypeVar("T_co", covariant=True)


@runtime_checkable
class Transport(Protocol):
    """Authenticated request/response capability against the Pub/Sub API.

    *path* is relative to the versioned API root, e.g.
    ``projects/p/topics/t:publish``.  Returns the decoded JSON object
    (an empty dict for empty responses).  Raises
    :class:`~gcloud_pubsub.errors.NotFoundError` for missing resources and
    :class:`~gcloud_pubsub.errors.TransportError` for any other failure.
    """

    async def send(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]: ...


@runtime_checkable
class Topic(Protocol):
    """A topic, used by publishers to send messages."""

    @property
    def name(self) -> str:
        """The relative name of this topic."""
        ...

    @property
    def project(self) -> str: ...

    @property
    def absolute_name(self) -> str: ...

    async def delete(self) -> None: ...

    async def publish(self, message: Message) -> None: ...

    async def publish_string(
        self, text: str, attributes: Mapping[str, str] | None = None
    ) -> None: ...

    async def publish_bytes(
        self, data: bytes, attributes: Mapping[str, str] | None = None
    ) -> None: ...


@runtime_checkable
class PullEvent(Protocol):
    """A pulled message together with its acknowledgment handle."""

    @property
    def message(self) -> Message: ...

    async def acknowledge(self) -> None:
        """Acknowledge reception so the service stops redelivering."""
        ...


@runtime_checkable
class Subscription(Protocol):
    """A subscription on a topic, either pull or push.

    A subscription with a push endpoint is a push subscription; without one
    it is a pull subscription.  Exactly one of :attr:`is_push` and
    :attr:`is_pull` holds at any time.
    """

    @property
    def name(self) -> str: ...

    @property
    def project(self) -> str: ...

    @property
    def absolute_name(self) -> str: ...

    @property
    def topic(self) -> Topic: ...

    @property
    def endpoint(self) -> str | None: ...

    @property
    def is_push(self) -> bool: ...

    @property
    def is_pull(self) -> bool: ...

    async def update_push_configuration(self, endpoint: str | None) -> None: ...

    async def delete(self) -> None: ...

    async def pull(
        self, wait: bool = True, timeout: float | None = None
    ) -> PullEvent | None: ...


@runtime_checkable
class Page(Protocol, Generic[T_co]):
    """One page of a listing, with a way to fetch the following page."""

    @property
    def items(self) -> list[T_co]: ...

    @property
    def is_last(self) -> bool: ...

    async def next(self, page_size: int | None = None) -> Page[T_co] | None:
        """Fetch the next page, or ``None`` if this is the last one."""
        ...


@runtime_checkable
class PubSub(Protocol):
    """Access to topics and subscriptions of one project."""

    @property
    def project(self) -> str: ...

    async def create_topic(self, name: str) -> Topic: ...

    async def delete_topic(self, name: str) -> None: ...

    async def lookup_topic(self, name: str) -> Topic: ...

    def list_topics(self) -> AsyncIterator[Topic]: ...

    async def page_topics(self, page_size: int | None = None) -> Page[Topic]: ...

    async def create_subscription(
        self, name: str, topic: str, endpoint: str | None = None
    ) -> Subscription: ...

    async def delete_subscription(self, name: str) -> None: ...

    async def lookup_subscription(self, name: str) -> Subscription: ...

    def list_subscriptions(self, query: str | None = None) -> AsyncIterator[Subscription]: ...

    async def page_subscriptions(
        self, topic: str | None = None, page_size: int | None = None
    ) -> Page[Subscription]: ...
