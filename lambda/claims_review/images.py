"""
Image ingestion - base64 uploads, agent-annotated images, and serving.

Decodes incoming images, checks them with Pillow before they touch
disk, and writes them under IMAGE_ROOT. Served files are looked up
by bare filename only.
"""

import base64
import binascii
import io
import logging
import re
import time
from pathlib import Path

from PIL import Image

from claims_review.config import (
    ALLOWED_IMAGE_FORMATS,
    ANNOTATED_SUBDIR,
    CONTENT_TYPES,
    DEFAULT_IMAGE_EXTENSION,
    IMAGE_ROOT,
    MAX_IMAGE_SIZE_MB,
    SAFE_FILENAME_PATTERN,
    UPLOADS_SUBDIR,
)
from claims_review.models import (
    ImageNotFoundError,
    ImageStorageError,
    ImageUploadResult,
    InvalidFilenameError,
    InvalidImageError,
)

logger = logging.getLogger(__name__)

_SAFE_FILENAME = re.compile(SAFE_FILENAME_PATTERN)
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

_FORMAT_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}


# --- Public API ---

def save_uploaded_image(
    claim_id: str,
    image_data: str,
    file_name: str | None = None,
    image_root: Path | str | None = None,
) -> ImageUploadResult:
    """
    Stores an additional claim photo.

    image_data is base64, with or without a data URL prefix. The
    extension comes from the sanitized file_name (default jpg) unless it
    disagrees with the detected format, in which case the format wins.

    Raises:
        InvalidImageError: If image_data is missing or not a string.
        ImageStorageError: If the image cannot be decoded or written.
    """
    if not image_data or not isinstance(image_data, str):
        raise InvalidImageError("Invalid image data")

    image_bytes = _decode(image_data.split(",", 1)[1] if "," in image_data else image_data)
    image_format = _verify_image(image_bytes)

    sanitized = sanitize_filename(file_name) if file_name else "upload"
    extension = sanitized.rsplit(".", 1)[-1].lower() if "." in sanitized else DEFAULT_IMAGE_EXTENSION
    detected = _FORMAT_EXTENSIONS.get(image_format, DEFAULT_IMAGE_EXTENSION)
    if CONTENT_TYPES.get(extension) != CONTENT_TYPES[detected]:
        extension = detected
    filename = f"{sanitize_filename(claim_id)}_{_timestamp_ms()}.{extension}"

    _write(Path(image_root or IMAGE_ROOT) / UPLOADS_SUBDIR / filename, image_bytes)
    return ImageUploadResult(image_url=f"/images/{UPLOADS_SUBDIR}/{filename}")


def save_annotated_image(
    claim_id: str,
    image_data_url: str,
    image_root: Path | str | None = None,
) -> ImageUploadResult:
    """
    Stores the agent's annotated copy of the vehicle photo.

    Raises:
        InvalidImageError: If image_data_url is not a data:image URL.
        ImageStorageError: If the image cannot be decoded or written.
    """
    if not image_data_url or not isinstance(image_data_url, str) or not image_data_url.startswith("data:image"):
        raise InvalidImageError("Invalid image data")

    image_bytes = _decode(re.sub(r"^data:image/\w+;base64,", "", image_data_url))
    image_format = _verify_image(image_bytes)

    extension = _FORMAT_EXTENSIONS.get(image_format, DEFAULT_IMAGE_EXTENSION)
    filename = f"{sanitize_filename(claim_id)}_annotated_{_timestamp_ms()}.{extension}"

    _write(Path(image_root or IMAGE_ROOT) / ANNOTATED_SUBDIR / filename, image_bytes)
    return ImageUploadResult(image_url=f"/images/{ANNOTATED_SUBDIR}/{filename}")


def read_uploaded_image(filename: str, image_root: Path | str | None = None) -> tuple[bytes, str]:
    """
    Returns (content, content type) of a previously uploaded image.

    Raises:
        InvalidFilenameError: If filename is empty or not a bare safe name.
        ImageNotFoundError: If the file cannot be read.
    """
    if not is_safe_filename(filename):
        raise InvalidFilenameError(f"Invalid filename: {filename!r}")

    path = Path(image_root or IMAGE_ROOT) / UPLOADS_SUBDIR / filename
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.error("Failed to serve image %s: %s", filename, e)
        raise ImageNotFoundError(f"Image not found: {filename}")

    return content, content_type_for(filename)


def is_safe_filename(filename: str | None) -> bool:
    # ".." alone passes the character check but is never a file
    return bool(filename) and bool(_SAFE_FILENAME.match(filename)) and filename not in (".", "..")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def content_type_for(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else DEFAULT_IMAGE_EXTENSION
    return CONTENT_TYPES.get(extension, CONTENT_TYPES[DEFAULT_IMAGE_EXTENSION])


# --- Internal ---

def _decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageStorageError(f"Image is not valid base64: {e}")


def _verify_image(image_bytes: bytes) -> str:
    """
    Checks size and format with Pillow. Returns the detected format.

    Raises:
        InvalidImageError: If the image is too large or of an unsupported format.
        ImageStorageError: If the bytes are not a readable image.
    """
    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > MAX_IMAGE_SIZE_MB:
        raise InvalidImageError(f"Image too large: {size_mb:.1f}MB (max {MAX_IMAGE_SIZE_MB}MB)")

    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.verify()
    except Exception as e:
        raise ImageStorageError(f"Invalid image - file is corrupted or not an image: {e}")

    if img.format not in ALLOWED_IMAGE_FORMATS:
        raise InvalidImageError(
            f"Unsupported format: {img.format} (only {', '.join(sorted(ALLOWED_IMAGE_FORMATS))} allowed)"
        )

    return img.format


def _write(path: Path, content: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    except OSError as e:
        raise ImageStorageError(f"Failed to write image {path.name}: {e}")
    logger.info("Stored image %s (%d bytes)", path, len(content))


def _timestamp_ms() -> int:
    return int(time.time() * 1000)
