"""Helpers for validating, normalizing, and storing uploaded images."""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener
from werkzeug.datastructures import FileStorage

from ..errors import StorageFailure, ValidationError
from . import s3

register_heif_opener()

LOGGER = logging.getLogger(__name__)
_WEBP_MIME = "image/webp"
_DEFAULT_MAX_BYTES = 1 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class StoredUpload:
    """Reference to a stored image; ``key`` is set only for S3 objects."""

    url: str
    content_type: str
    key: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"url": self.url, "content_type": self.content_type, "key": self.key}


def store_upload(
    storage: FileStorage | None,
    category: str,
    *,
    quality: int = 85,
    min_quality: int = 30,
    logger: Optional[logging.Logger] = None,
) -> StoredUpload:
    """Validate an uploaded image, re-encode it as WebP and store it.

    Objects go to S3 when a bucket is configured; otherwise the image is
    returned inline as a ``data:`` URL."""
    log = logger or LOGGER
    if not isinstance(storage, FileStorage) or not storage.filename:
        raise ValidationError("No image file provided.")

    filename = storage.filename
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    allowed = set(current_app.config.get("ALLOWED_EXTENSIONS", ()))
    if allowed and extension not in allowed:
        raise ValidationError("Unsupported image format.")

    storage.stream.seek(0)
    raw_bytes = storage.read()
    upload_cap = current_app.config.get("MAX_UPLOAD_BYTES")
    if upload_cap and len(raw_bytes) > int(upload_cap):
        raise ValidationError("Image exceeds the maximum upload size.")

    try:
        image_handle = Image.open(io.BytesIO(raw_bytes))
    except UnidentifiedImageError as exc:
        raise ValidationError("Only image files are allowed.") from exc

    size_cap = _resolve_max_bytes(current_app.config.get("MAX_IMAGE_BYTES"))
    with image_handle as image:
        payload, smallest = _encode_with_limit(
            image, quality=quality, min_quality=min_quality, max_bytes=size_cap
        )

    if payload is None:
        if smallest is None:
            log.warning("Rejected upload %s: image conversion failed", filename)
            raise ValidationError("The image could not be processed.")
        log.warning(
            "Rejected upload %s: minimum achievable size %.2f MB exceeds limit %.2f MB",
            filename,
            len(smallest) / (1024 * 1024),
            (size_cap or 0) / (1024 * 1024),
        )
        raise ValidationError("The image is too large even after compression.")

    if not s3.is_configured():
        encoded = base64.b64encode(payload).decode("ascii")
        return StoredUpload(url=f"data:{_WEBP_MIME};base64,{encoded}", content_type=_WEBP_MIME)

    try:
        key, url = s3.upload_bytes(
            payload,
            content_type=_WEBP_MIME,
            category=category,
            filename_hint=filename,
        )
    except s3.S3Error as exc:
        log.warning("Failed to upload %s to S3", filename, exc_info=True)
        raise StorageFailure("Failed to store the uploaded image.") from exc

    log.info("Stored upload %s as %s", filename, key)
    return StoredUpload(url=url, content_type=_WEBP_MIME, key=key)


def _encode_with_limit(
    image: Image.Image,
    *,
    quality: int,
    min_quality: int,
    max_bytes: int | None,
) -> tuple[Optional[bytes], Optional[bytes]]:
    """Return WebP bytes within ``max_bytes`` along with the smallest attempted payload."""
    best_payload: Optional[bytes] = None
    for level in _quality_candidates(quality, min_quality):
        payload = _image_to_webp_bytes(image, quality=level)
        if not payload:
            continue
        if best_payload is None or len(payload) < len(best_payload):
            best_payload = payload
        if max_bytes is None or len(payload) <= max_bytes:
            return payload, best_payload

    return None, best_payload


def _quality_candidates(start: int, minimum: int) -> list[int]:
    if start <= minimum:
        return [max(start, minimum)]

    levels: list[int] = []
    current = start
    while current > minimum:
        levels.append(current)
        current = max(minimum, current - 10)
    levels.append(minimum)
    return levels


def _image_to_webp_bytes(image: Image.Image, *, quality: int) -> Optional[bytes]:
    try:
        image.load()
        converted = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    except OSError:
        return None

    buffer = io.BytesIO()
    try:
        converted.save(buffer, format="WEBP", quality=quality, method=6)
    except OSError:
        return None

    return buffer.getvalue()


def _resolve_max_bytes(value: int | None) -> Optional[int]:
    if value is None:
        return _DEFAULT_MAX_BYTES
    if int(value) <= 0:
        return None
    return int(value)
