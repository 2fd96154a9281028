"""Decode stored photos back into downloadable binaries."""

import logging
import re
from dataclasses import dataclass
from typing import Dict

from .image_store import ImageStore
from ..utils.data_uri import DEFAULT_IMAGE_TYPE, decode_data_uri

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'["\\\r\n]')


def _safe_filename(filename: str, fallback: str) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", filename or "").strip()
    # header values must be latin-1
    cleaned = cleaned.encode("latin-1", "replace").decode("latin-1")
    return cleaned or fallback


@dataclass
class ImageDownload:
    """Binary response for a stored photo."""
    key: str
    content: bytes
    content_type: str
    filename: str

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(len(self.content)),
            "Content-Disposition": f'attachment; filename="{self.filename}"',
        }


class ImageRetrievalService:
    """
    Resolves storage keys to binary downloads.

    This is a decode-and-serve path: the stored payload is not re-validated
    or re-compressed, so two fetches of the same key return the same bytes.
    """

    def __init__(self, store: ImageStore, default_content_type: str = DEFAULT_IMAGE_TYPE):
        self.store = store
        self.default_content_type = default_content_type

    def fetch(self, key: str) -> ImageDownload:
        """
        Load and decode the photo stored under ``key``.

        Args:
            key: Storage key, ``{case_id}_{index}``

        Returns:
            ImageDownload with decoded bytes, content type and filename

        Raises:
            ImageNotFoundError: If the key is unknown
            MalformedPayloadError: If the stored data URI cannot be decoded
        """
        stored = self.store.get(key)
        content, content_type = decode_data_uri(
            stored.data_uri,
            key=key,
            default_type=self.default_content_type
        )
        logger.debug(f"Serving {key} as {content_type} ({len(content)} bytes)")
        return ImageDownload(
            key=key,
            content=content,
            content_type=content_type,
            filename=_safe_filename(stored.filename, fallback=f"{key}.jpg"),
        )
