"""Fixtures for tests against a running Pub/Sub emulator."""

from __future__ import annotations

import os
import uuid

import pytest

EMULATOR_HOST = os.environ.get("PUBSUB_EMULATOR_HOST")


def pytest_collection_modifyitems(config, items):
    if EMULATOR_HOST:
        return
    skip = pytest.mark.skip(reason="PUBSUB_EMULATOR_HOST not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def unique_name() -> str:
    """A resource name that does not collide across test runs."""
    return f"it-{uuid.uuid4().hex[:12]}"
