"""Pub/Sub topic and subscription naming conventions.

Names are accepted in two forms:

- relative: ``<short-name>``
- absolute: ``projects/<project>/{topics|subscriptions}/<short-name>``

The absolute form is canonical and is what every remote call uses.
"""

from __future__ import annotations

from enum import StrEnum

from gcloud_pubsub.errors import InvalidNameError

_PROJECTS_PREFIX = "projects/"


class ResourceKind(StrEnum):
    """Kinds of named Pub/Sub resources, valued by their path segment."""

    TOPIC = "topics"
    SUBSCRIPTION = "subscriptions"


def _split_absolute(name: str) -> list[str]:
    parts = name.split("/")
    if len(parts) != 4 or not parts[1] or not parts[3]:
        msg = (
            f"Invalid absolute name '{name}': expected "
            "'projects/<project>/<topics|subscriptions>/<name>'"
        )
        raise InvalidNameError(msg)
    return parts


def resolve_name(name: str, project: str, kind: ResourceKind) -> str:
    """Return the absolute name for *name*, which may be relative or absolute."""
    if name.startswith(_PROJECTS_PREFIX):
        parts = _split_absolute(name)
        if parts[2] != kind.value:
            msg = f"Invalid {kind.value[:-1]} name '{name}': expected '/{kind.value}/'"
            raise InvalidNameError(msg)
        return name

    if not name or "/" in name:
        msg = f"Invalid relative {kind.value[:-1]} name '{name}'"
        raise InvalidNameError(msg)
    if not project:
        msg = f"Cannot resolve relative name '{name}' without a project"
        raise InvalidNameError(msg)
    return f"{_PROJECTS_PREFIX}{project}/{kind.value}/{name}"


def relative_name(absolute_name: str) -> str:
    """Strip the ``projects/<project>/<kind>/`` prefix from an absolute name."""
    if not absolute_name.startswith(_PROJECTS_PREFIX):
        msg = f"'{absolute_name}' is not an absolute name"
        raise InvalidNameError(msg)
    parts = _split_absolute(absolute_name)
    if parts[2] not in (ResourceKind.TOPIC, ResourceKind.SUBSCRIPTION):
        msg = f"Unknown resource kind '{parts[2]}' in '{absolute_name}'"
        raise InvalidNameError(msg)
    return parts[3]


def project_of(absolute_name: str) -> str:
    """Return the project segment of an absolute name."""
    relative_name(absolute_name)
    return absolute_name.split("/")[1]


def topic_name(project: str, name: str) -> str:
    """Build a fully-qualified Pub/Sub topic name."""
    return resolve_name(name, project, ResourceKind.TOPIC)


def subscription_name(project: str, name: str) -> str:
    """Build a fully-qualified Pub/Sub subscription name."""
    return resolve_name(name, project, ResourceKind.SUBSCRIPTION)
