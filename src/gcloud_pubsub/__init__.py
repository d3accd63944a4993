"""Async client for Google Cloud Pub/Sub topics and subscriptions."""

from gcloud_pubsub.base import Page, PubSub, PullEvent, Subscription, Topic, Transport
from gcloud_pubsub.client import PubSubClient
from gcloud_pubsub.config import PubSubConfig, load_config
from gcloud_pubsub.errors import (
    DecodeError,
    InvalidNameError,
    NotFoundError,
    PubSubError,
    TransportError,
)
from gcloud_pubsub.events import PubSubPullEvent, PushEvent
from gcloud_pubsub.message import Message
from gcloud_pubsub.naming import ResourceKind, relative_name, resolve_name
from gcloud_pubsub.paging import ResourcePage
from gcloud_pubsub.subscription import PubSubSubscription
from gcloud_pubsub.topic import PubSubTopic
from gcloud_pubsub.transport import SCOPES, RestTransport

__all__ = [
    "SCOPES",
    "DecodeError",
    "InvalidNameError",
    "Message",
    "NotFoundError",
    "Page",
    "PubSub",
    "PubSubClient",
    "PubSubConfig",
    "PubSubError",
    "PubSubPullEvent",
    "PubSubSubscription",
    "PubSubTopic",
    "PullEvent",
    "PushEvent",
    "ResourceKind",
    "ResourcePage",
    "RestTransport",
    "Subscription",
    "Topic",
    "Transport",
    "TransportError",
    "load_config",
    "relative_name",
    "resolve_name",
]
