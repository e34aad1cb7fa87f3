"""
Exception hierarchy for transformator_client.

Provides:
- A base error carrying a stable code, a category and structured details
- One subclass per failure kind of the client (config, transport, protocol,
  service, missing binary, startup timeout, failed launch)
- A one-line formatter used by the CLI
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    SERVICE = "service"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    FATAL = "fatal"


class TransformatorError(Exception):
    """Base exception for all transformator_client errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigError(TransformatorError):
    """Unparsable endpoint string or invalid configuration."""

    def __init__(self, message: str, value: Any = None):
        details = {"value": value} if value is not None else {}
        super().__init__(message, code="CONFIG_ERROR", category=ErrorCategory.VALIDATION, details=details)


class TransportError(TransformatorError):
    """Connect or socket I/O failure."""

    def __init__(self, message: str, endpoint: str | None = None):
        details = {"endpoint": endpoint} if endpoint else {}
        super().__init__(message, code="TRANSPORT_ERROR", category=ErrorCategory.TRANSPORT, details=details)


class ProtocolError(TransformatorError):
    """Undecodable or malformed response."""

    def __init__(self, message: str):
        super().__init__(message, code="PROTOCOL_ERROR", category=ErrorCategory.PROTOCOL)


class ServiceError(TransformatorError):
    """The transformator service reported a failure."""

    def __init__(self, service_message: str, engine: str | None = None):
        details = {"engine": engine} if engine else {}
        super().__init__(
            f"Service error: {service_message}",
            code="SERVICE_ERROR",
            category=ErrorCategory.SERVICE,
            details=details,
        )
        self.service_message = service_message


class NotFoundError(TransformatorError):
    """Resource not found error."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class TimeoutError(TransformatorError):
    """Operation timeout error."""

    def __init__(self, operation: str, timeout_seconds: float, pid: int | None = None):
        details: dict[str, Any] = {"operation": operation, "timeout_seconds": timeout_seconds}
        if pid is not None:
            details["pid"] = pid
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details=details,
        )


class LaunchError(TransformatorError):
    """Standalone server exited or could not be started."""

    def __init__(self, message: str, returncode: int | None = None):
        details = {"returncode": returncode} if returncode is not None else {}
        super().__init__(message, code="LAUNCH_FAILED", category=ErrorCategory.FATAL, details=details)


def format_error(exc: BaseException, include_details: bool = False) -> str:
    """Format an exception as a one-line diagnostic."""
    if isinstance(exc, TransformatorError):
        if include_details:
            return f"Error [{exc.code}] ({exc.category.value}): {exc.message}"
        return f"Error: {exc.message}"
    if isinstance(exc, asyncio.TimeoutError):
        return "Error: Operation timed out"
    return f"Error: {exc}"
