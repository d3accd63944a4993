"""Load PubSubConfig from the environment and an optional YAML file."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gcloud_pubsub.config.models import PubSubConfig

# ${NAME} or ${NAME:-fallback}
_REFERENCE = re.compile(r"\$\{(?P<name>\w+)(?::-(?P<fallback>[^}]*))?\}")


def _expand(match: re.Match[str]) -> str:
    name = match["name"]
    value = os.environ.get(name, match["fallback"])
    if value is None:
        msg = f"Config references ${{{name}}}, which is unset and has no fallback"
        raise ValueError(msg)
    return value


def resolve_env_vars(data: Any) -> Any:
    """Expand environment references in every string of parsed YAML *data*."""
    if isinstance(data, str):
        return _REFERENCE.sub(_expand, data)
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(value) for value in data]
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Parse *path* as a YAML mapping with environment references expanded.

    An empty file yields an empty mapping.
    """
    source = Path(path)
    try:
        data = yaml.safe_load(source.read_text())
    except yaml.YAMLError as exc:
        msg = f"{source} is not valid YAML: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{source} must contain a mapping, not {type(data).__name__}"
        raise TypeError(msg)
    return resolve_env_vars(data)


def load_config(path: str | Path | None = None) -> PubSubConfig:
    """Load client config from the environment, optionally overlaid by a YAML file.

    Keys present in the file win over the environment; the file may itself
    reference environment variables with ``${VAR}`` / ``${VAR:-default}``.
    """
    base = PubSubConfig.from_env().model_dump(exclude_none=True, exclude_defaults=True)
    if path is not None:
        overrides = load_yaml(path)
        # A top-level "pubsub:" section is accepted as well as a flat mapping
        section = overrides.get("pubsub", overrides)
        if not isinstance(section, dict):
            msg = f"Expected a mapping under 'pubsub' in {path}"
            raise TypeError(msg)
        base = {**base, **section}
    try:
        return PubSubConfig.model_validate(base)
    except ValidationError as exc:
        source = path or "environment"
        msg = f"Invalid Pub/Sub config ({source}):\n{exc}"
        raise ValueError(msg) from exc
