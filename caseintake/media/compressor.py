"""Photo compression for intake submissions using Pillow."""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageOps

from ..models.case import UploadedImage
from ..utils.data_uri import encode_data_uri
from ..utils.errors import DecodeError, handle_decode_error
from ..utils.identifiers import generate_image_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 800
DEFAULT_QUALITY = 0.8
OUTPUT_FORMAT = "JPEG"
OUTPUT_CONTENT_TYPE = "image/jpeg"

SourceFile = Union[Tuple[str, bytes], Tuple[str, bytes, Optional[str]]]


@dataclass
class CompressedImage:
    """Result of compressing a single photo."""
    data_uri: str
    width: int
    height: int
    encoded_size: int


def _jpeg_quality(quality: float) -> int:
    return max(1, min(100, int(round(quality * 100))))


def _flatten(img: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def compress_image(
    data: bytes,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: float = DEFAULT_QUALITY,
    filename: str = "image"
) -> CompressedImage:
    """
    Downsample and re-encode a photo as a JPEG data URI.

    The longer side is scaled to at most ``max_dimension`` with the aspect
    ratio preserved; smaller images keep their size.

    Args:
        data: Raw bytes of the uploaded file
        max_dimension: Upper bound for both width and height in pixels
        quality: JPEG quality factor in (0, 1]
        filename: Original filename, used in error messages

    Returns:
        CompressedImage with the data URI and output dimensions

    Raises:
        ValueError: If max_dimension or quality is out of range
        DecodeError: If the bytes are not a decodable raster image
    """
    if max_dimension <= 0:
        raise ValueError(f"max_dimension must be positive, got {max_dimension}")
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    if not data:
        raise DecodeError.unreadable_image(filename, ValueError("file is empty"))

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            img = ImageOps.exif_transpose(source)
            img = _flatten(img)
            img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format=OUTPUT_FORMAT, quality=_jpeg_quality(quality), optimize=True)
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError.unreadable_image(filename, exc) from exc

    encoded = buffer.getvalue()
    logger.debug(
        f"Compressed {filename}: {len(data)} -> {len(encoded)} bytes, "
        f"{img.width}x{img.height}"
    )
    return CompressedImage(
        data_uri=encode_data_uri(encoded, OUTPUT_CONTENT_TYPE),
        width=img.width,
        height=img.height,
        encoded_size=len(encoded),
    )


def _compress_upload(
    item: SourceFile,
    max_dimension: int,
    quality: float
) -> Optional[UploadedImage]:
    filename, data = item[0], item[1]
    content_type = item[2] if len(item) > 2 else None

    if content_type and not content_type.lower().startswith("image/"):
        logger.info(f"Skipping non-image upload {filename} ({content_type})")
        return None

    try:
        compressed = compress_image(data, max_dimension, quality, filename=filename)
    except DecodeError as exc:
        handle_decode_error(exc, filename, logger)
        return None

    return UploadedImage(
        image_id=generate_image_id(),
        data_uri=compressed.data_uri,
        filename=filename,
        original_size=len(data),
        encoded_size=compressed.encoded_size,
        width=compressed.width,
        height=compressed.height,
    )


def compress_batch(
    files: Sequence[SourceFile],
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: float = DEFAULT_QUALITY,
    max_workers: int = 4
) -> List[UploadedImage]:
    """
    Compress a selection of files concurrently.

    Results keep the order in which the files were selected, regardless of
    which compression finishes first. Non-image and undecodable files are
    logged and left out; they never abort the batch.

    Args:
        files: ``(filename, bytes)`` or ``(filename, bytes, content_type)``
        max_dimension: Upper bound for both width and height in pixels
        quality: JPEG quality factor in (0, 1]
        max_workers: Size of the compression thread pool

    Returns:
        Compressed images in selection order
    """
    if not files:
        return []

    workers = max(1, min(max_workers, len(files)))
    # Workers run in copies of the caller's context so log lines keep the case id
    context = copy_context()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compress") as pool:
        results = list(pool.map(
            lambda item: context.copy().run(_compress_upload, item, max_dimension, quality),
            files
        ))

    images = [image for image in results if image is not None]
    skipped = len(files) - len(images)
    logger.info(
        f"Compressed {len(images)} of {len(files)} uploads"
        + (f" ({skipped} skipped)" if skipped else "")
    )
    return images
