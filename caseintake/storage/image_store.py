"""Keyed store for compressed case photos."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Union

from ..models.case import EmbeddedImage, StoredImage, UploadedImage
from ..utils.errors import ImageNotFoundError

logger = logging.getLogger(__name__)


def image_key(case_id: str, index: int) -> str:
    """Storage key for the ``index``-th photo of a case."""
    return f"{case_id}_{index}"


class ImageStore(ABC):
    """
    Minimal put/get capability shared by the store endpoint and retrieval.

    Keys are built by the caller (see ``image_key``) so that a case's photos
    can be addressed deterministically. Writing an existing key replaces it.
    """

    @abstractmethod
    def put(self, key: str, payload: str, filename: str, size: int) -> None:
        """Store a data URI payload under ``key``."""

    @abstractmethod
    def get(self, key: str) -> StoredImage:
        """
        Look up a stored image.

        Raises:
            ImageNotFoundError: If nothing was stored under ``key``
        """


class InMemoryImageStore(ImageStore):
    """
    Process-scoped image store.

    Contents live only as long as the process. There is no eviction; every
    photo stays in memory until restart. ``in`` and ``len()`` are supported
    for diagnostics and tests; the pipeline itself only uses put and get.
    """

    def __init__(self):
        self._images: Dict[str, StoredImage] = {}
        self._lock = threading.Lock()
        logger.info("Initialized InMemoryImageStore")

    def put(self, key: str, payload: str, filename: str, size: int) -> None:
        record = StoredImage(data_uri=payload, filename=filename, size=int(size))
        with self._lock:
            replaced = key in self._images
            self._images[key] = record
        if replaced:
            logger.warning(f"Overwrote stored image {key}")
        logger.debug(f"Stored image {key} ({filename}, {size} bytes)")

    def get(self, key: str) -> StoredImage:
        with self._lock:
            record = self._images.get(key)
        if record is None:
            raise ImageNotFoundError.for_key(key)
        return record

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._images

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)


StorableImage = Union[UploadedImage, EmbeddedImage]


def store_case_images(
    store: ImageStore,
    case_id: str,
    images: Iterable[StorableImage]
) -> List[str]:
    """
    Store a case's photos under ``{case_id}_0``, ``{case_id}_1``, ...

    Args:
        store: Target image store
        case_id: Case identifier used as the key prefix
        images: Photos in upload order

    Returns:
        Storage keys in the same order
    """
    keys = []
    for index, image in enumerate(images):
        key = image_key(case_id, index)
        if isinstance(image, UploadedImage):
            size = image.original_size
        else:
            size = image.size
        store.put(key, image.data_uri, image.filename, size)
        keys.append(key)

    logger.info(f"Stored {len(keys)} image(s) for case {case_id}")
    return keys
