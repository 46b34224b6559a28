# imagesign/media/native.py
"""
Embedded Image Signing - sign and verify orchestrators.

Signing encrypts the signer's identity, builds the canonical bytes of the
image with a placeholder record, signs canonical bytes + identity token +
timestamp, and embeds the final record in the image's own metadata:

- JPEG: JSON record in the EXIF ImageDescription tag
- PNG: JSON record in a ``tEXt`` chunk with keyword ``Signature``
- GIF/WebP: passed through unchanged and reported as unsigned

Verification extracts the record, rebuilds the same canonical bytes from
the delivered file, checks the signature and decrypts the identity. It
never raises; every failure is reported in a VerificationResult.
"""

import logging
import re
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from imagesign.config import ALLOWED_CONTENT_TYPES, SigningConfig
from imagesign.errors import (
    DecryptionFailure,
    IdentityCodecError,
    InvalidIdentity,
    InvalidImageData,
    InvalidSignature,
    InvalidSignatureFormat,
    InvalidTimestamp,
    MetadataEmbedFailure,
    NoSignatureFound,
    UnsignedLegacySignature,
    UnsupportedFormat,
    ValidationError,
    VerificationFailure,
)
from imagesign.identity import decrypt_identity, encrypt_identity
from imagesign.keys import load_public_key
from imagesign.media.formats import ImageFormat, detect_format, get_normalizer
from imagesign.media.png import PngChunkError
from imagesign.metrics import SigningMetrics
from imagesign.payload import (
    LegacyPayload,
    SignaturePayload,
    build_signable_payload,
    format_timestamp,
    parse_signature_record,
    parse_timestamp,
)
from imagesign.signer import sign_payload, verify_payload

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

VERIFIED_DETAILS = "Image signature successfully verified"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class SignResult:
    """
    Result of a sign operation.

    ``data`` is always usable output. Check ``signed`` before assuming it
    carries a signature: pass-through formats and recoverable embedding
    failures return the original bytes with ``signed=False``.
    """

    data: bytes
    signed: bool
    format: ImageFormat
    payload: Optional[SignaturePayload] = None
    warning: Optional[str] = None


@dataclass(frozen=True)
class VerificationResult:
    """Result of a verify operation."""

    verified: bool
    email: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary form with absent fields omitted."""
        result: Dict[str, Any] = {"verified": self.verified}
        for name in ("email", "timestamp", "error", "details"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    @classmethod
    def from_failure(cls, failure: VerificationFailure) -> "VerificationResult":
        return cls(verified=False, error=failure.error, details=failure.details)


# =============================================================================
# Sign
# =============================================================================


def sign_image(
    data: bytes,
    content_type: Optional[str],
    identity: str,
    config: SigningConfig,
    *,
    strict: bool = False,
    now: Optional[datetime] = None,
    metrics: Optional[SigningMetrics] = None,
) -> SignResult:
    """
    Embed a signature for ``identity`` into an image.

    Args:
        data: Raw image bytes.
        content_type: Declared MIME type; None to rely on detection only.
        identity: Authenticated identity (email) of the signer.
        config: Signing configuration with the private key and secret.
        strict: Raise instead of returning unsigned output for pass-through
            formats and metadata embedding failures.
        now: Signing time (default: current UTC time).
        metrics: Optional metrics collector.

    Returns:
        SignResult with the output bytes and whether they are signed.

    Raises:
        ValidationError: Unsupported content type, unrecognised data or
            empty identity.
        ConfigurationError: No private key configured.
        SignatureAlgorithmFailure: The private key cannot sign.
        UnsupportedFormat: Pass-through format with ``strict=True``.
        MetadataEmbedFailure: Embedding failed with ``strict=True``.
    """
    timer = metrics.sign_timer() if metrics else nullcontext()
    with timer:
        result = _sign(data, content_type, identity, config, strict=strict, now=now)
    if metrics:
        metrics.record_signature(result.format.value, result.signed)
    return result


def _sign(
    data: bytes,
    content_type: Optional[str],
    identity: str,
    config: SigningConfig,
    strict: bool,
    now: Optional[datetime],
) -> SignResult:
    if content_type is not None and content_type.split(";")[0].strip().lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Invalid file type. Allowed types: {', '.join(ALLOWED_CONTENT_TYPES)}")
    if not identity or not identity.strip():
        raise ValidationError("A signer identity is required")

    image_format = detect_format(data)
    if image_format is None:
        raise ValidationError("Invalid or corrupted image file")

    normalizer = get_normalizer(image_format, software=config.software_name)
    if normalizer is None:
        message = f"Signature embedding not supported for {image_format.value}, returning original image"
        if strict:
            raise UnsupportedFormat(message)
        logger.warning(message)
        return SignResult(data=data, signed=False, format=image_format, warning=message)

    private_key = config.require_private_key()
    encrypted_identity = encrypt_identity(identity, config.encryption_secret)
    timestamp = format_timestamp(now)

    try:
        placeholder = SignaturePayload(
            signature="",
            email=encrypted_identity,
            timestamp=timestamp,
            original_buffer_hash=normalizer.content_hash(data),
        )
        canonical = normalizer.prepare(data, placeholder)
    except MetadataEmbedFailure as e:
        return _embed_failed(data, image_format, e, strict)

    payload = build_signable_payload(canonical, encrypted_identity, timestamp)
    logger.debug(
        f"Signing {image_format.value}: canonical={len(canonical)} bytes, "
        f"identity token={len(encrypted_identity)} chars, payload={len(payload)} bytes"
    )
    # SignatureAlgorithmFailure is fatal and propagates.
    record = placeholder.with_signature(sign_payload(payload, private_key))

    try:
        signed = normalizer.finalize(canonical, record)
    except MetadataEmbedFailure as e:
        return _embed_failed(data, image_format, e, strict)

    return SignResult(data=signed, signed=True, format=image_format, payload=record)


def _embed_failed(
    data: bytes, image_format: ImageFormat, error: MetadataEmbedFailure, strict: bool
) -> SignResult:
    if strict:
        raise error
    logger.warning(f"{image_format.value.upper()} metadata embedding failed, returning original image: {error}")
    return SignResult(data=data, signed=False, format=image_format, warning=str(error))


# =============================================================================
# Verify
# =============================================================================


def verify_image(
    data: bytes,
    config: SigningConfig,
    *,
    public_key: Optional[Union[PublicKeyTypes, str]] = None,
    now: Optional[datetime] = None,
    metrics: Optional[SigningMetrics] = None,
) -> VerificationResult:
    """
    Verify the signature embedded in an image.

    Args:
        data: Raw image bytes.
        config: Configuration with the identity secret and verification keys.
        public_key: Key (object or material) to use instead of the
            configured keys, e.g. a key supplied alongside the image.
        now: Reference time for the age check (default: current UTC time).
        metrics: Optional metrics collector.

    Returns:
        VerificationResult; never raises.
    """
    timer = metrics.verification_timer() if metrics else nullcontext()
    with timer:
        try:
            result = _verify(data, config, public_key, now)
        except VerificationFailure as e:
            logger.debug(f"Verification failed: {e.error}: {e.details}")
            result = VerificationResult.from_failure(e)
        except Exception as e:
            logger.error(f"Verification error: {e}")
            result = VerificationResult.from_failure(VerificationFailure())
    if metrics:
        metrics.record_verification(result.verified)
    return result


def _candidate_keys(
    config: SigningConfig, public_key: Optional[Union[PublicKeyTypes, str]]
) -> Iterable[PublicKeyTypes]:
    if public_key is None:
        return config.verification_keys
    if isinstance(public_key, (str, bytes)):
        try:
            return (load_public_key(public_key),)
        except ValueError as e:
            raise InvalidSignature(f"The supplied public key is invalid: {e}")
    return (public_key,)


def _verify(
    data: bytes,
    config: SigningConfig,
    public_key: Optional[Union[PublicKeyTypes, str]],
    now: Optional[datetime],
) -> VerificationResult:
    image_format = detect_format(data)
    normalizer = get_normalizer(image_format) if image_format else None
    if normalizer is None:
        kind = image_format.value if image_format else "unrecognised data"
        raise NoSignatureFound(f"Signature verification is not supported for {kind}")

    try:
        raw_record = normalizer.extract(data)
    except PngChunkError as e:
        raise InvalidImageData(f"The image data could not be parsed: {e}")
    if raw_record is None:
        raise NoSignatureFound()

    record = parse_signature_record(raw_record)
    if isinstance(record, LegacyPayload):
        raise UnsignedLegacySignature(
            f"Legacy signature record from {record.timestamp} carries no digital signature"
        )
    if record.is_placeholder:
        raise InvalidSignatureFormat("The signature record has an empty signature")

    try:
        canonical = normalizer.canonical_bytes(data, record)
    except (PngChunkError, MetadataEmbedFailure) as e:
        raise InvalidImageData(f"The image data could not be parsed: {e}")

    payload = build_signable_payload(canonical, record.email, record.timestamp)
    keys = tuple(_candidate_keys(config, public_key))
    if not keys:
        raise InvalidSignature("No public key is available for verification")
    if not any(verify_payload(payload, key, record.signature) for key in keys):
        raise InvalidSignature()

    # The signature covers the canonical bytes only; the delivered file must
    # also be exactly what signing produced from them.
    try:
        rendered = normalizer.finalize(canonical, record)
    except MetadataEmbedFailure as e:
        raise InvalidImageData(f"The image data could not be parsed: {e}")
    if rendered != data:
        logger.debug(f"Delivered {image_format.value} differs from the signed rendering")
        raise InvalidSignature("The image data was modified after signing")

    try:
        email = decrypt_identity(record.email, config.encryption_secret)
    except IdentityCodecError as e:
        logger.debug(f"Identity decryption failed: {e}")
        raise DecryptionFailure()

    if not EMAIL_RE.match(email):
        raise InvalidIdentity()

    try:
        signed_at = parse_timestamp(record.timestamp)
    except ValueError:
        raise InvalidTimestamp()

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    age_days = (now - signed_at).total_seconds() / 86400
    details = VERIFIED_DETAILS
    if age_days > config.max_signature_age_days:
        details = f"Signature is {int(age_days)} days old"

    return VerificationResult(
        verified=True,
        email=email,
        timestamp=record.timestamp,
        details=details,
    )
