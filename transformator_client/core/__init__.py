"""Shared protocol types and codec helpers."""

from .protocol import Endpoint, ResponseOutcome, TransformRequest, TransformResponse
from .serialization import (
    FrameScanner,
    decode_frame,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
    request_from_payload,
    response_from_payload,
    safe_dict,
    unwrap_response,
)

__all__ = [
    "Endpoint",
    "ResponseOutcome",
    "TransformRequest",
    "TransformResponse",
    "FrameScanner",
    "decode_frame",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
    "request_from_payload",
    "response_from_payload",
    "safe_dict",
    "unwrap_response",
]
