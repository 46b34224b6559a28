"""
imagesign - verifiable signatures embedded in image metadata.

An authenticated signer embeds an encrypted identity, a timestamp and a
digital signature into a JPEG's EXIF block or a PNG text chunk; anyone
holding the verification key and identity secret can later check the
signature against the image bytes and recover the signer's identity.
"""

__version__ = "1.0.0"

# Core signing/verification
from .media.native import SignResult, VerificationResult, sign_image, verify_image
from .media.formats import ImageFormat, detect_format
from .config import SigningConfig

# Building blocks
from .identity import encrypt_identity, decrypt_identity
from .keys import KeyPair, KeyForm, generate_keypair, normalize_key
from .signer import sign_payload, verify_payload
from .payload import SignaturePayload, build_signable_payload
from .errors import (
    ImageSignError,
    ValidationError,
    ConfigurationError,
    InvalidKeyMaterial,
    MalformedToken,
    DecryptionFailed,
    UnsupportedFormat,
    MetadataEmbedFailure,
    SignatureAlgorithmFailure,
)


def __getattr__(name):
    """Lazy loading of optional collaborators."""
    if name in ("SigningMetrics", "get_metrics"):
        from . import metrics

        return getattr(metrics, name)
    elif name in (
        "AuditEvent",
        "AuditEventKind",
        "AuditSink",
        "LoggingAuditSink",
        "MemoryAuditSink",
        "record_sign",
        "record_verify",
    ):
        from . import audit

        return getattr(audit, name)
    elif name == "validate_image":
        from .validation import validate_image

        return validate_image
    raise AttributeError(f"module 'imagesign' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Core
    "sign_image",
    "verify_image",
    "SignResult",
    "VerificationResult",
    "SigningConfig",
    "ImageFormat",
    "detect_format",
    # Building blocks
    "encrypt_identity",
    "decrypt_identity",
    "KeyPair",
    "KeyForm",
    "generate_keypair",
    "normalize_key",
    "sign_payload",
    "verify_payload",
    "SignaturePayload",
    "build_signable_payload",
    # Errors
    "ImageSignError",
    "ValidationError",
    "ConfigurationError",
    "InvalidKeyMaterial",
    "MalformedToken",
    "DecryptionFailed",
    "UnsupportedFormat",
    "MetadataEmbedFailure",
    "SignatureAlgorithmFailure",
    # Lazy loaded
    "SigningMetrics",
    "get_metrics",
    "AuditEvent",
    "AuditEventKind",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "record_sign",
    "record_verify",
    "validate_image",
]
