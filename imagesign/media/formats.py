# imagesign/media/formats.py
"""
Image format detection and the per-format normalizer interface.

Formats form a closed set. Only JPEG and PNG can carry an embedded
signature; GIF and WebP are recognised so they can be passed through and
reported as unsigned.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from imagesign.payload import SignaturePayload


class ImageFormat(str, Enum):
    """Image formats recognised by magic bytes."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def is_signable(self) -> bool:
        return self in (ImageFormat.JPEG, ImageFormat.PNG)

    @classmethod
    def from_content_type(cls, content_type: str) -> Optional["ImageFormat"]:
        """Map a MIME type (``image/jpeg``, ``image/jpg`` ...) to a format."""
        if not content_type:
            return None
        subtype = content_type.split(";")[0].strip().lower()
        if not subtype.startswith("image/"):
            return None
        subtype = subtype[len("image/") :]
        if subtype in ("jpg", "pjpeg"):
            subtype = "jpeg"
        try:
            return cls(subtype)
        except ValueError:
            return None


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SOI = b"\xff\xd8\xff"


def detect_format(data: bytes) -> Optional[ImageFormat]:
    """Detect the image format from leading magic bytes."""
    if data.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    if data.startswith(JPEG_SOI):
        return ImageFormat.JPEG
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageFormat.GIF
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    return None


class MetadataNormalizer(ABC):
    """
    Per-format canonicalization and signature embedding.

    ``prepare`` and ``canonical_bytes`` must agree: the canonical bytes
    computed from a finalized file equal the bytes ``prepare`` returned
    when that file was signed.
    ``finalize`` is deterministic, so finalizing those canonical bytes
    with the embedded record reproduces the signed file byte for byte.
    """

    @abstractmethod
    def content_hash(self, data: bytes) -> str:
        """Hash of the input content recorded as ``originalBufferHash``."""
        pass

    @abstractmethod
    def prepare(self, data: bytes, placeholder: SignaturePayload) -> bytes:
        """Return the canonical bytes to sign for an unsigned input."""
        pass

    @abstractmethod
    def finalize(self, canonical: bytes, record: SignaturePayload) -> bytes:
        """Embed the signed record into the canonical bytes."""
        pass

    @abstractmethod
    def extract(self, data: bytes) -> Optional[str]:
        """Return the embedded signature record string, if present."""
        pass

    @abstractmethod
    def canonical_bytes(self, data: bytes, record: SignaturePayload) -> bytes:
        """Rebuild the signed canonical bytes from a delivered file."""
        pass


def get_normalizer(
    image_format: ImageFormat, software: Optional[str] = None
) -> Optional[MetadataNormalizer]:
    """
    Return the normalizer for a signable format, or None for pass-through formats.

    Args:
        image_format: Detected format.
        software: Value for the EXIF Software tag (JPEG only).
    """
    if not image_format.is_signable:
        return None
    if image_format is ImageFormat.JPEG:
        from imagesign.media.jpeg import JpegNormalizer

        return JpegNormalizer(software) if software else JpegNormalizer()
    from imagesign.media.png import PngNormalizer

    return PngNormalizer()
