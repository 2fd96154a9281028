"""Build the notification payload for a case submission."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..models.case import CaseRecord, EmbeddedImage, NotificationPayload, UploadedImage
from ..utils.data_uri import decoded_size
from ..utils.errors import ValidationError

logger = logging.getLogger(__name__)

ImageInput = Union[UploadedImage, EmbeddedImage, Dict[str, Any]]


def _declared_size(value: Any, index: int) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError.invalid_image(index, f"size must be a byte count, got {value!r}")
    try:
        size = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError.invalid_image(index, f"size must be a byte count, got {value!r}") from None
    if size < 0:
        raise ValidationError.invalid_image(index, f"size must not be negative, got {size}")
    return size


def wire_image_fields(image: Any, index: int) -> Tuple[str, str, int]:
    """
    Read ``(data_uri, filename, declared_size)`` from one ``{url, name, size}`` entry.

    Raises:
        ValidationError: If the entry is not an object, its url is not a
            string or its size is not a non-negative integer
    """
    if not isinstance(image, dict):
        raise ValidationError.invalid_image(index, "expected an object with url, name and size")
    data_uri = image.get("url") or image.get("data_uri") or image.get("dataUri") or ""
    if not isinstance(data_uri, str):
        raise ValidationError.invalid_image(index, "url must be a data URI string")
    filename = image.get("name") or image.get("filename") or f"Image_{index + 1}"
    return data_uri, str(filename), _declared_size(image.get("size"), index)


def _embedded(image: ImageInput, index: int) -> EmbeddedImage:
    """
    Normalize an uploaded image or a wire dict to an EmbeddedImage.

    The gallery shows the size of the bytes actually embedded, so the size is
    taken from the data URI when it has one and from the declared size
    otherwise.
    """
    if isinstance(image, EmbeddedImage):
        return image
    if isinstance(image, UploadedImage):
        return EmbeddedImage(
            data_uri=image.data_uri,
            filename=image.filename,
            size=image.encoded_size,
        )

    data_uri, filename, declared = wire_image_fields(image, index)
    size = decoded_size(data_uri) or declared
    return EmbeddedImage(data_uri=data_uri, filename=filename, size=size)


def validate_record(record: CaseRecord, case_id: Optional[str]) -> None:
    """
    Check the fields a submission cannot go out without.

    Raises:
        ValidationError: If name, phone or case identifier is blank
    """
    missing = record.missing_required()
    if not (case_id or "").strip():
        missing.append("case_id")
    if missing:
        raise ValidationError.missing_fields(missing)


def assemble_submission(
    record: Union[CaseRecord, Dict[str, Any]],
    case_id: str,
    images: Optional[Iterable[ImageInput]] = None
) -> NotificationPayload:
    """
    Combine a case record, its identifier and its photos into one payload.

    Validation happens before anything else; a failing record produces no
    payload at all. Photos keep the order they were given in.

    Args:
        record: CaseRecord or wire dict (``firstName``, ``phone``, ...)
        case_id: Case identifier
        images: UploadedImage objects or ``{url, name, size}`` dicts

    Returns:
        Immutable NotificationPayload

    Raises:
        ValidationError: If required fields are missing
    """
    if not isinstance(record, CaseRecord):
        record = CaseRecord.from_dict(record)

    validate_record(record, case_id)

    embedded: List[EmbeddedImage] = [
        _embedded(image, index) for index, image in enumerate(images or [])
    ]

    payload = NotificationPayload(
        record=record,
        case_id=case_id.strip(),
        image_count=len(embedded),
        images=tuple(embedded),
    )
    logger.info(
        f"Assembled submission {payload.case_id} for {record.full_name} "
        f"with {payload.image_count} image(s)"
    )
    return payload
