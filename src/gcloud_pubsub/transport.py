"""REST transport for the Pub/Sub v1 API over a caller-owned httpx client."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gcloud_pubsub.errors import DecodeError, NotFoundError, TransportError

logger = structlog.get_logger()

PRODUCTION_ROOT_URL = "https://pubsub.googleapis.com/"
API_VERSION = "v1"

SCOPES = (
    "https://www.googleapis.com/auth/pubsub",
    "https://www.googleapis.com/auth/cloud-platform",
)


def emulator_root_url(host: str) -> str:
    """Root URL for a local emulator listening on *host* (``host[:port]``)."""
    return f"http://{host}/"


def _error_detail(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a Google API error body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message", resp.text))
    return resp.text


class RestTransport:
    """Sends JSON requests to the Pub/Sub REST API.

    Implements the Transport protocol.  The httpx client is borrowed: it must
    already carry whatever authentication the service requires, and it is
    never closed here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        root_url: str = PRODUCTION_ROOT_URL,
    ) -> None:
        self._client = client
        self._root_url = root_url if root_url.endswith("/") else f"{root_url}/"

    @property
    def root_url(self) -> str:
        return self._root_url

    async def send(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._root_url}{API_VERSION}/{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            resp = await self._client.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                params=query or None,
            )
        except httpx.HTTPError as exc:
            logger.error(
                "pubsub.request_failed", method=method, path=path, error=str(exc)
            )
            msg = f"{method} {path} failed: {exc}"
            raise TransportError(msg, method=method, path=path) from exc

        if resp.status_code == httpx.codes.NOT_FOUND:
            msg = f"{method} {path}: not found ({_error_detail(resp)})"
            raise NotFoundError(msg, status_code=404, method=method, path=path)
        if resp.is_error:
            detail = _error_detail(resp)
            logger.error(
                "pubsub.request_failed",
                method=method,
                path=path,
                status=resp.status_code,
                error=detail,
            )
            msg = f"{method} {path} failed: {resp.status_code} {detail}"
            raise TransportError(
                msg, status_code=resp.status_code, method=method, path=path
            )

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            msg = f"{method} {path}: response is not valid JSON"
            raise DecodeError(msg) from exc
        if not isinstance(data, dict):
            msg = f"{method} {path}: expected a JSON object, got {type(data).__name__}"
            raise DecodeError(msg)
        return data

    @retry(
        retry=retry_if_exception_type(httpx.HTTPError),
        stop=stop_after_attempt(10),
        wait=wait_exponential(multiplier=1, max=10),
        reraise=True,
    )
    async def wait_until_ready(self) -> None:
        """Block until the service root is reachable (useful for the emulator)."""
        resp = await self._client.get(self._root_url)
        resp.raise_for_status()
        logger.info("pubsub.ready", url=self._root_url)
