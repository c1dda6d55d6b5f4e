"""Base64 data URI helpers for PNG payloads."""

import base64
import binascii

from visualperfect.constants import PNG_DATA_URI_PREFIX
from visualperfect.exceptions import DecodeError


def to_data_uri(data: bytes) -> str:
    """Encode PNG bytes as a data URI."""
    return PNG_DATA_URI_PREFIX + base64.b64encode(data).decode("ascii")


def from_data_uri(value: str) -> bytes:
    """Decode a PNG data URI or a bare base64 string."""
    payload = value.strip()
    if payload.startswith("data:"):
        header, sep, payload = payload.partition(",")
        if not sep or not header.endswith(";base64"):
            raise DecodeError("image must be a base64 data URI")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        msg = f"invalid base64 image payload: {e}"
        raise DecodeError(msg) from e
