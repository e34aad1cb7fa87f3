"""transformator_client - client for the transformator text-transformation service."""

__version__ = "0.1.0"

from transformator_client.client import LIST_ENGINE, SHORTCUT_ENGINES, TransformatorClient
from transformator_client.config.schema import ClientOptions, StandaloneOptions
from transformator_client.core.protocol import Endpoint
from transformator_client.transport.endpoint import resolve
from transformator_client.utils.exceptions import (
    ConfigError,
    LaunchError,
    NotFoundError,
    ProtocolError,
    ServiceError,
    TimeoutError,
    TransformatorError,
    TransportError,
)

__all__ = [
    "__version__",
    "ClientOptions",
    "ConfigError",
    "Endpoint",
    "LIST_ENGINE",
    "LaunchError",
    "NotFoundError",
    "ProtocolError",
    "SHORTCUT_ENGINES",
    "ServiceError",
    "StandaloneOptions",
    "TimeoutError",
    "TransformatorClient",
    "TransformatorError",
    "TransportError",
    "resolve",
]
