"""Message — the immutable content of a Pub/Sub message."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from gcloud_pubsub.errors import DecodeError

_EMPTY_ATTRIBUTES: Mapping[str, str] = MappingProxyType({})


def _freeze_attributes(attributes: Mapping[str, str] | None) -> Mapping[str, str]:
    if not attributes:
        return _EMPTY_ATTRIBUTES
    for key, value in attributes.items():
        if not isinstance(key, str) or not isinstance(value, str):
            msg = f"Message attributes must map str to str, got {key!r}: {value!r}"
            raise TypeError(msg)
    return MappingProxyType(dict(attributes))


@dataclass(frozen=True, slots=True)
class Message:
    """A binary message body plus a set of string attributes.

    The body can be read as text via :attr:`as_string`, in which case it is
    decoded as UTF-8.  ``message_id`` and ``publish_time`` are assigned by
    the service and are only set on received messages.
    """

    body: bytes
    attributes: Mapping[str, str] = field(default_factory=dict)
    message_id: str | None = None
    publish_time: str | None = None

    def __post_init__(self) -> None:
        # bytes(int) would allocate a zero-filled buffer
        if isinstance(self.body, (str, int)):
            msg = f"Message body must be bytes-like, got {type(self.body).__name__}"
            raise TypeError(msg)
        if not isinstance(self.body, bytes):
            object.__setattr__(self, "body", bytes(self.body))
        object.__setattr__(self, "attributes", _freeze_attributes(self.attributes))

    @classmethod
    def with_string(
        cls, text: str, attributes: Mapping[str, str] | None = None
    ) -> Message:
        """Create a message whose body is *text* encoded as UTF-8."""
        return cls(text.encode("utf-8"), attributes or _EMPTY_ATTRIBUTES)

    @classmethod
    def with_bytes(
        cls, data: bytes, attributes: Mapping[str, str] | None = None
    ) -> Message:
        """Create a message with a binary body."""
        return cls(data, attributes or _EMPTY_ATTRIBUTES)

    @property
    def as_bytes(self) -> bytes:
        return self.body

    @property
    def as_string(self) -> str:
        """The body decoded as UTF-8.

        Raises :class:`DecodeError` if the body is not valid UTF-8; use
        :attr:`as_bytes` and decode manually for other encodings.
        """
        try:
            return self.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Message body is not valid UTF-8: {exc}"
            raise DecodeError(msg) from exc

    def __hash__(self) -> int:
        return hash(
            (
                self.body,
                tuple(sorted(self.attributes.items())),
                self.message_id,
                self.publish_time,
            )
        )

    def to_api(self) -> dict[str, Any]:
        """Encode as a ``PubsubMessage`` JSON object for the REST API."""
        payload: dict[str, Any] = {"data": base64.b64encode(self.body).decode("ascii")}
        if self.attributes:
            payload["attributes"] = dict(self.attributes)
        return payload

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Message:
        """Decode a ``PubsubMessage`` JSON object received from the service."""
        data = payload.get("data")
        if data is None:
            body = b""
        elif isinstance(data, str):
            try:
                body = base64.b64decode(data, validate=True)
            except ValueError as exc:
                msg = f"Message data is not valid base64: {exc}"
                raise DecodeError(msg) from exc
        else:
            msg = f"Message data must be a base64 string, got {type(data).__name__}"
            raise DecodeError(msg)

        attributes = payload.get("attributes")
        if attributes is None:
            attributes = _labels_to_attributes(payload.get("labels"))
        if not isinstance(attributes, Mapping):
            msg = f"Message attributes must be an object, got {type(attributes).__name__}"
            raise DecodeError(msg)

        message_id = payload.get("messageId", payload.get("message_id"))
        publish_time = payload.get("publishTime", payload.get("publish_time"))
        try:
            return cls(
                body,
                attributes,
                message_id=str(message_id) if message_id is not None else None,
                publish_time=str(publish_time) if publish_time is not None else None,
            )
        except TypeError as exc:
            raise DecodeError(str(exc)) from exc


def _labels_to_attributes(labels: Any) -> dict[str, str]:
    """Convert the legacy ``labels`` list into an attribute mapping.

    Each label is ``{"key": k, "strValue": v}`` or ``{"key": k, "numValue": n}``.
    """
    if labels is None:
        return {}
    if not isinstance(labels, list):
        msg = f"Message labels must be a list, got {type(labels).__name__}"
        raise DecodeError(msg)
    attributes: dict[str, str] = {}
    for label in labels:
        if not isinstance(label, Mapping) or not isinstance(label.get("key"), str):
            msg = f"Malformed message label: {label!r}"
            raise DecodeError(msg)
        if "strValue" in label:
            attributes[label["key"]] = str(label["strValue"])
        elif "numValue" in label:
            attributes[label["key"]] = str(label["numValue"])
        else:
            msg = f"Message label '{label['key']}' has no value"
            raise DecodeError(msg)
    return attributes
