"""Downscale and re-encode image attachments before upload."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

from PIL import Image, UnidentifiedImageError

from src.blobs import detect_content_type
from src.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """An image ready to be uploaded with a memory."""

    filename: str
    data: bytes
    content_type: str
    compressed: bool = False


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale down to fit the bounding box, keeping the aspect ratio.

    Landscape images are bounded by *max_width*, portrait and square ones by
    *max_height*. Images already inside the box are returned unchanged.
    """
    if width > height:
        if width > max_width:
            return max_width, max(1, round(height * max_width / width))
    elif height > max_height:
        return max(1, round(width * max_height / height)), max_height
    return width, height


def compress_image(
    data: bytes,
    max_width: int | None = None,
    max_height: int | None = None,
    quality: int | None = None,
) -> bytes:
    """Return *data* resized to the bounding box and encoded as JPEG.

    Raises ``ValueError`` if *data* is not a decodable image.
    """
    max_width = max_width or settings.image_max_width
    max_height = max_height or settings.image_max_height
    quality = quality or settings.image_quality

    try:
        with Image.open(io.BytesIO(data)) as img:
            size = fit_within(img.width, img.height, max_width, max_height)
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Not a readable image: {exc}") from exc

    if size != rgb.size:
        rgb = rgb.resize(size, Image.Resampling.LANCZOS)
    out = io.BytesIO()
    rgb.save(out, format="JPEG", quality=quality, optimize=True)
    return out.getvalue()


async def prepare_attachment(data: bytes, filename: str) -> Attachment:
    """Compress an image, falling back to the original bytes on failure."""
    try:
        compressed = await asyncio.to_thread(compress_image, data)
    except ValueError:
        logger.warning("Image compression failed for %s, using original", filename)
        return Attachment(
            filename=filename,
            data=data,
            content_type=detect_content_type(filename, fallback="image/jpeg"),
        )

    logger.debug(
        "Compressed %s: %.2f KB -> %.2f KB", filename, len(data) / 1024, len(compressed) / 1024
    )
    stem = PurePosixPath(filename).stem or "image"
    return Attachment(
        filename=f"{stem}.jpg",
        data=compressed,
        content_type="image/jpeg",
        compressed=True,
    )
