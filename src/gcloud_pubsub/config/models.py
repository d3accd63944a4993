"""Pydantic configuration models for the Pub/Sub client."""

from __future__ import annotations

import os
import re
from typing import Self

from pydantic import BaseModel, Field, SecretStr, field_validator

from gcloud_pubsub.transport import PRODUCTION_ROOT_URL, emulator_root_url

EMULATOR_HOST_ENV = "PUBSUB_EMULATOR_HOST"
PROJECT_ENV_VARS = ("PUBSUB_PROJECT_ID", "GOOGLE_CLOUD_PROJECT")

_HOST_PATTERN = re.compile(r"^[A-Za-z0-9.\-_\[\]:]+$")


class PubSubConfig(BaseModel, extra="forbid"):
    """Where and how to reach the Pub/Sub service."""

    project_id: str | None = None
    # host[:port] of a local emulator; overrides root_url when set
    emulator_host: str | None = None
    root_url: str = PRODUCTION_ROOT_URL
    access_token: SecretStr | None = None
    page_size: int = Field(default=50, ge=1, le=1000)
    # Long enough for a waiting pull to be answered by the service
    timeout_seconds: float = Field(default=90.0, gt=0)

    @field_validator("emulator_host")
    @classmethod
    def validate_emulator_host(cls, v: str | None) -> str | None:
        """Accept ``host`` or ``host:port`` only; the scheme is always http."""
        if v is None or v == "":
            return None
        if "://" in v or "/" in v or not _HOST_PATTERN.match(v):
            msg = f"emulator_host must be 'host[:port]' without scheme, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("root_url")
    @classmethod
    def validate_root_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = f"root_url must be an http(s) URL, got '{v}'"
            raise ValueError(msg)
        return v if v.endswith("/") else f"{v}/"

    @property
    def effective_root_url(self) -> str:
        """The service root every call goes to."""
        if self.emulator_host:
            return emulator_root_url(self.emulator_host)
        return self.root_url

    @classmethod
    def from_env(cls) -> Self:
        """Build a config from ``PUBSUB_EMULATOR_HOST`` and the project env vars."""
        project_id = next(
            (os.environ[name] for name in PROJECT_ENV_VARS if os.environ.get(name)),
            None,
        )
        return cls(
            project_id=project_id,
            emulator_host=os.environ.get(EMULATOR_HOST_ENV) or None,
        )
