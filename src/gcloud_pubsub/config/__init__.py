"""Client configuration: pydantic models and the YAML/env loader."""

from gcloud_pubsub.config.loader import load_config
from gcloud_pubsub.config.models import PubSubConfig

__all__ = ["PubSubConfig", "load_config"]
