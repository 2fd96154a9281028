"""Helpers for ``data:<mime>;base64,<payload>`` strings."""

import base64
import binascii
import re
from typing import Optional, Tuple

from .errors import MalformedPayloadError

DEFAULT_IMAGE_TYPE = "image/jpeg"

_MIME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.+-]*/[a-z0-9][a-z0-9.+-]*$", re.IGNORECASE)


def encode_data_uri(data: bytes, content_type: str) -> str:
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:{content_type};base64,{b64}"


def parse_mime_type(data_uri: str, default: str = DEFAULT_IMAGE_TYPE) -> str:
    """
    Read the MIME tag from the header of a data URI.

    Anything that does not look like ``type/subtype`` (a missing tag, a bare
    ``data:;base64`` header, or no ``data:`` scheme at all) yields ``default``.
    """
    header = data_uri.split(",", 1)[0] if data_uri else ""
    if not header.lower().startswith("data:"):
        return default
    mime = header[5:].split(";", 1)[0].strip()
    if not _MIME_PATTERN.match(mime):
        return default
    return mime.lower()


def decode_data_uri(
    data_uri: str,
    key: Optional[str] = None,
    default_type: str = DEFAULT_IMAGE_TYPE
) -> Tuple[bytes, str]:
    """
    Decode a data URI into raw bytes and its content type.

    Args:
        data_uri: Encoded payload as produced by ``encode_data_uri``
        key: Storage key, only used to annotate errors
        default_type: Content type used when the MIME tag is unusable

    Returns:
        Tuple of (decoded bytes, content type)

    Raises:
        MalformedPayloadError: If the comma separator is missing or the
            payload is not valid base64
    """
    if not isinstance(data_uri, str) or "," not in data_uri:
        raise MalformedPayloadError.for_key(key, "missing data URI separator")

    _, payload = data_uri.split(",", 1)
    try:
        content = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayloadError.for_key(key, "invalid base64 payload", exc) from exc

    return content, parse_mime_type(data_uri, default_type)


def decoded_size(data_uri: str) -> int:
    """Byte length of the payload without decoding it."""
    if not data_uri or "," not in data_uri:
        return 0
    payload = data_uri.split(",", 1)[1].strip()
    padding = len(payload) - len(payload.rstrip("="))
    return max(0, (len(payload) * 3) // 4 - padding)
