"""
Case intake entry point.

IntakeService wires the compressor, image store, retrieval service and
notification dispatcher together. Each HTTP request calls one of its methods;
the service itself holds no per-request state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .media.compressor import SourceFile, compress_batch
from .models.case import CaseRecord, DeliveryReceipt, UploadedImage
from .notification.assembler import assemble_submission, validate_record, wire_image_fields
from .notification.channels import DeliveryChannel, build_channel
from .notification.dispatcher import NotificationDispatcher
from .storage.image_store import ImageStore, InMemoryImageStore, image_key, store_case_images
from .storage.retrieval import ImageDownload, ImageRetrievalService
from .utils.config import Config
from .utils.errors import ConfigurationError, ValidationError
from .utils.identifiers import generate_case_id
from .utils.logging import reset_context, set_context

logger = logging.getLogger(__name__)


@dataclass
class StoredImageLink:
    """Download link for one stored photo."""
    key: str
    name: str
    size: int


@dataclass
class IntakeResult:
    """Outcome of a complete submission."""
    case_id: str
    receipt: DeliveryReceipt
    images: List[UploadedImage]
    skipped: int
    links: List[StoredImageLink] = field(default_factory=list)

    @property
    def image_count(self) -> int:
        return len(self.images)


def build_store(config: Config) -> ImageStore:
    backend = (config.storage.backend or "memory").strip().lower()
    if backend == "memory":
        return InMemoryImageStore()
    raise ConfigurationError.invalid("storage.backend", backend)


class IntakeService:
    """Runs case submissions through compression, delivery and storage."""

    def __init__(
        self,
        config: Config,
        store: Optional[ImageStore] = None,
        channel: Optional[DeliveryChannel] = None
    ):
        self.config = config
        self.store = store if store is not None else build_store(config)
        self.retrieval = ImageRetrievalService(self.store)
        self.dispatcher = NotificationDispatcher(
            channel=channel if channel is not None else build_channel(config.notification),
            sender=config.notification.sender,
            recipients=config.notification.recipients,
            subject_prefix=config.notification.subject_prefix,
        )
        logger.info(
            f"IntakeService ready: store={type(self.store).__name__}, "
            f"channel={self.dispatcher.channel.name}"
        )

    def new_case_id(self) -> str:
        return generate_case_id(prefix=self.config.server.case_id_prefix)

    def submit(
        self,
        record: Union[CaseRecord, Dict[str, Any]],
        files: Sequence[SourceFile],
        case_id: Optional[str] = None
    ) -> IntakeResult:
        """
        Process a full submission: validate, compress, notify, then store.

        The record is validated before any photo is touched. Photos are
        stored only after the notification went out, so a failed delivery
        leaves nothing behind.

        Args:
            record: CaseRecord or wire dict
            files: Uploaded files as ``(filename, bytes[, content_type])``
            case_id: Identifier issued to the client session, if any

        Returns:
            IntakeResult with the delivery receipt and storage links

        Raises:
            ValidationError: If required fields are missing
            DeliveryError: If the notification could not be delivered
        """
        if not isinstance(record, CaseRecord):
            record = CaseRecord.from_dict(record)
        case_id = (case_id or "").strip() or self.new_case_id()
        validate_record(record, case_id)

        if len(files) > self.config.storage.max_files:
            raise ValidationError.too_many_files(len(files), self.config.storage.max_files)

        token = set_context(case_id=case_id)
        try:
            compression = self.config.compression
            images = compress_batch(
                files,
                max_dimension=compression.max_dimension,
                quality=compression.quality,
                max_workers=compression.max_workers,
            )
            payload = assemble_submission(record, case_id, images)
            receipt = self.dispatcher.dispatch(payload)
            keys = store_case_images(self.store, case_id, images)
        finally:
            reset_context(token)

        links = [
            StoredImageLink(key=key, name=image.filename, size=image.original_size)
            for key, image in zip(keys, images)
        ]
        return IntakeResult(
            case_id=case_id,
            receipt=receipt,
            images=images,
            skipped=len(files) - len(images),
            links=links,
        )

    def store_images(self, case_id: str, images: List[Dict[str, Any]]) -> List[StoredImageLink]:
        """
        Store client-compressed photos sent as ``{url, name, size}`` dicts.

        Raises:
            ValidationError: If the case id or image list is missing, or an
                entry is not a well-formed ``{url, name, size}`` object
        """
        if not (case_id or "").strip() or images is None:
            raise ValidationError.missing_fields(
                [name for name, value in (("caseId", case_id), ("images", images)) if not value]
            )

        if not isinstance(images, list):
            raise ValidationError.invalid_image(None, "expected a list of objects")
        # Check every entry first so a bad one leaves nothing half-stored
        entries = [wire_image_fields(image, index) for index, image in enumerate(images)]

        links = []
        for index, (data_uri, name, size) in enumerate(entries):
            key = image_key(case_id, index)
            self.store.put(key, data_uri, name, size)
            links.append(StoredImageLink(key=key, name=name, size=size))

        logger.info(f"Stored {len(links)} client image(s) for case {case_id}")
        return links

    def fetch_image(self, key: str) -> ImageDownload:
        return self.retrieval.fetch(key)

    def notify(
        self,
        customer_data: Dict[str, Any],
        case_id: str,
        images: Optional[List[Dict[str, Any]]] = None
    ) -> DeliveryReceipt:
        """Assemble and dispatch a notification from the JSON wire shape."""
        if images is not None and not isinstance(images, list):
            raise ValidationError.invalid_image(None, "expected a list of objects")
        payload = assemble_submission(customer_data or {}, case_id or "", images or [])
        return self.dispatcher.dispatch(payload)

    def send_test(self) -> DeliveryReceipt:
        return self.dispatcher.send_test()
