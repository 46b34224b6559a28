"""
Input validation run by callers before handing an upload to the core.
"""

import io
import mimetypes
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from imagesign.config import ALLOWED_CONTENT_TYPES, MAX_FILE_SIZE
from imagesign.errors import ValidationError
from imagesign.media.formats import ImageFormat, detect_format

_SUFFIX_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def content_type_for_path(path: Union[str, Path]) -> Optional[str]:
    """Guess an image MIME type from a file name."""
    suffix = Path(path).suffix.lower()
    if suffix in _SUFFIX_TYPES:
        return _SUFFIX_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed


def validate_image(
    data: bytes,
    content_type: Optional[str] = None,
    max_size: int = MAX_FILE_SIZE,
) -> ImageFormat:
    """
    Validate an uploaded image.

    Args:
        data: Raw upload bytes.
        content_type: Declared MIME type, if any.
        max_size: Maximum accepted size in bytes.

    Returns:
        The detected ImageFormat.

    Raises:
        ValidationError: Too large, disallowed type, type mismatch, or
            data Pillow cannot decode.
    """
    if len(data) > max_size:
        raise ValidationError(
            f"File size too large. Maximum allowed size is {max_size / (1024 * 1024):g}MB"
        )

    if content_type is not None and content_type.split(";")[0].strip().lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Invalid file type. Allowed types: {', '.join(ALLOWED_CONTENT_TYPES)}")

    detected = detect_format(data)
    if detected is None:
        raise ValidationError("Invalid or corrupted image file")

    if content_type is not None:
        declared = ImageFormat.from_content_type(content_type)
        if declared is not detected:
            raise ValidationError(
                f"Declared type {content_type} does not match image data ({detected.content_type})"
            )

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise ValidationError("Invalid or corrupted image file")

    return detected
