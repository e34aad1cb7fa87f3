"""Utility functions for transformator_client."""

from transformator_client.utils.exceptions import (
    TransformatorError,
    ConfigError,
    TransportError,
    ProtocolError,
    ServiceError,
    NotFoundError,
    TimeoutError,
    LaunchError,
    ErrorCategory,
    format_error,
)

__all__ = [
    "TransformatorError",
    "ConfigError",
    "TransportError",
    "ProtocolError",
    "ServiceError",
    "NotFoundError",
    "TimeoutError",
    "LaunchError",
    "ErrorCategory",
    "format_error",
]
