"""CBOR serialization helpers for transformator request/response frames."""

from __future__ import annotations

import io
from typing import Any

import cbor2

from transformator_client.utils.exceptions import ProtocolError, ServiceError

from .protocol import ResponseOutcome, TransformRequest, TransformResponse


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def _dumps(value: Any) -> bytes:
    try:
        return cbor2.dumps(value)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as exc:
        raise ProtocolError(f"Cannot encode frame: {exc}") from exc


def decode_frame(buffer: bytes) -> tuple[Any, int] | None:
    """Decode the first CBOR item in ``buffer``.

    Returns ``(value, consumed)`` or ``None`` when the buffer holds only a
    prefix of an item. Bytes past the first item are left untouched.
    """
    if not buffer:
        return None
    fp = io.BytesIO(buffer)
    try:
        value = cbor2.CBORDecoder(fp).decode()
    except cbor2.CBORDecodeEOF:
        return None
    except (cbor2.CBORDecodeError, ValueError) as exc:
        raise ProtocolError(f"Undecodable response: {exc}") from exc
    return value, fp.tell()


_ARGUMENT_SIZES = {24: 1, 25: 2, 26: 4, 27: 8}


class FrameScanner:
    """Find where the first CBOR item of a growing buffer ends, without decoding it.

    ``feed`` resumes from the last complete head, so scanning a response that
    arrives in many chunks stays linear in its size.
    """

    def __init__(self) -> None:
        self._pos = 0
        # items still expected per nesting level; None marks an indefinite container
        self._pending: list[int | None] = [1]

    def feed(self, buffer: bytes | bytearray) -> int | None:
        """Return the end offset of the first item, or None while it is incomplete."""
        while self._pending:
            head = self._read_head(buffer)
            if head is None:
                return None
            major, info, argument, size = head
            if major in (2, 3) and info != 31:
                if len(buffer) < self._pos + size + argument:
                    return None
                self._pos += size + argument
                self._item_done()
                continue
            self._pos += size
            if major == 7 and info == 31:
                if self._pending[-1] is not None:
                    raise ProtocolError("Undecodable response: unexpected break marker")
                self._pending.pop()
                self._item_done()
            elif info == 31:
                self._pending.append(None)
            elif major == 4 or major == 5:
                count = argument * (2 if major == 5 else 1)
                if count:
                    self._pending.append(count)
                else:
                    self._item_done()
            elif major == 6:
                self._pending.append(1)
            else:
                self._item_done()
        return self._pos

    def _read_head(self, buffer: bytes | bytearray) -> tuple[int, int, int, int] | None:
        if len(buffer) <= self._pos:
            return None
        initial = buffer[self._pos]
        major, info = initial >> 5, initial & 0x1F
        if info < 24:
            return major, info, info, 1
        if info == 31:
            if major in (0, 1, 6):
                raise ProtocolError(f"Undecodable response: invalid initial byte 0x{initial:02x}")
            return major, info, 0, 1
        extra = _ARGUMENT_SIZES.get(info)
        if extra is None:
            raise ProtocolError(f"Undecodable response: invalid initial byte 0x{initial:02x}")
        if len(buffer) < self._pos + 1 + extra:
            return None
        argument = int.from_bytes(buffer[self._pos + 1:self._pos + 1 + extra], "big")
        if major == 7:
            argument = 0
        return major, info, argument, 1 + extra

    def _item_done(self) -> None:
        while self._pending:
            if self._pending[-1] is None:
                return
            self._pending[-1] -= 1
            if self._pending[-1]:
                return
            self._pending.pop()


def _loads(data: bytes) -> Any:
    frame = decode_frame(data)
    if frame is None:
        raise ProtocolError("Truncated frame")
    return frame[0]


def encode_request(request: TransformRequest) -> bytes:
    """Encode a request as the CBOR triple ``[engine, input, data]``."""
    return _dumps([request.engine, request.input, request.data or {}])


def decode_request(data: bytes) -> TransformRequest:
    """Decode a request frame (service side of the protocol)."""
    return request_from_payload(_loads(data))


def request_from_payload(value: Any) -> TransformRequest:
    """Validate an already-decoded request triple."""
    if not isinstance(value, list) or len(value) not in (2, 3):
        raise ProtocolError("Request must be an array of [engine, input, data]")
    engine, payload = value[0], value[1]
    extra = value[2] if len(value) == 3 else {}
    if not isinstance(engine, str):
        raise ProtocolError("Request engine must be a string")
    if not isinstance(payload, (str, bytes)):
        raise ProtocolError("Request input must be text or bytes")
    return TransformRequest(engine=engine, input=payload, data=safe_dict(extra))


def encode_response(response: TransformResponse) -> bytes:
    """Encode a response map (service side of the protocol)."""
    if response.outcome is ResponseOutcome.FAILURE:
        return _dumps({"error": response.error or ""})
    if response.outcome is ResponseOutcome.SUCCESS:
        return _dumps({"result": response.result})
    return _dumps({})


def response_from_payload(payload: Any) -> TransformResponse:
    """Classify an already-decoded response value. ``error`` wins over ``result``."""
    if not isinstance(payload, dict):
        raise ProtocolError("No answer")
    if "error" in payload:
        return TransformResponse(outcome=ResponseOutcome.FAILURE, error=str(payload["error"]))
    if "result" in payload:
        return TransformResponse(outcome=ResponseOutcome.SUCCESS, result=payload["result"])
    return TransformResponse(outcome=ResponseOutcome.MALFORMED)


def decode_response(data: bytes) -> TransformResponse:
    """Decode raw response bytes into a TransformResponse."""
    return response_from_payload(_loads(data))


def unwrap_response(response: TransformResponse, *, engine: str | None = None) -> Any:
    """Return the success payload or raise the matching error."""
    if response.outcome is ResponseOutcome.SUCCESS:
        return response.result
    if response.outcome is ResponseOutcome.FAILURE:
        raise ServiceError(response.error or "", engine=engine)
    raise ProtocolError("Something is wrong: no result and no error")
