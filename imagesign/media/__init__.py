# imagesign/media/__init__.py
"""
imagesign Media Module

Format detection, per-format signature normalizers and the sign/verify
orchestrators for JPEG (EXIF) and PNG (text chunk) images.
"""

from .formats import ImageFormat, MetadataNormalizer, detect_format, get_normalizer
from .native import SignResult, VerificationResult, sign_image, verify_image

__all__ = [
    "ImageFormat",
    "MetadataNormalizer",
    "detect_format",
    "get_normalizer",
    "SignResult",
    "VerificationResult",
    "sign_image",
    "verify_image",
]
