"""
Exception hierarchy for imagesign.

Sign-side errors propagate to the caller. Verify-side errors
(``VerificationFailure`` subclasses) are raised inside the verify pipeline
and mapped to a ``VerificationResult``; they never escape ``verify_image``.
"""

from typing import Optional


class ImageSignError(Exception):
    """Base class for all imagesign errors."""


class ValidationError(ImageSignError):
    """Input image failed size, type or integrity checks."""


class ConfigurationError(ImageSignError):
    """Signing configuration is missing or invalid."""


class InvalidKeyMaterial(ImageSignError, ValueError):
    """Key material could not be parsed into a usable key."""


class IdentityCodecError(ImageSignError):
    """Base class for identity token errors."""


class MalformedToken(IdentityCodecError):
    """Token is not of the form ``iv_hex:ciphertext_hex``."""


class DecryptionFailed(IdentityCodecError):
    """Token is well-formed but could not be decrypted."""


class UnsupportedFormat(ImageSignError):
    """Image format cannot carry an embedded signature."""


class MetadataEmbedFailure(ImageSignError):
    """Signature metadata could not be written into the image."""


class SignatureAlgorithmFailure(ImageSignError):
    """No signing scheme accepts the configured private key."""


# =============================================================================
# Verify-side failures
# =============================================================================


class VerificationFailure(ImageSignError):
    """A verification step failed; carries the result's error and details."""

    error = "Verification failed"
    details = "An error occurred while verifying the image signature"

    def __init__(self, details: Optional[str] = None):
        if details is not None:
            self.details = details
        super().__init__(self.details)


class NoSignatureFound(VerificationFailure):
    error = "No signature found"
    details = "No digital signature found in image metadata"


class InvalidSignatureFormat(VerificationFailure):
    error = "Invalid signature format"
    details = "The image contains unrecognized signature data"


class UnsignedLegacySignature(VerificationFailure):
    error = "Unsigned legacy signature"
    details = "The image carries a legacy signature record without a digital signature"


class InvalidImageData(VerificationFailure):
    error = "Invalid image data"
    details = "The image data could not be parsed"


class InvalidSignature(VerificationFailure):
    error = "Invalid signature"
    details = "The digital signature does not match the image contents"


class DecryptionFailure(VerificationFailure):
    error = "Decryption failed"
    details = "Unable to decrypt the embedded email address"


class InvalidIdentity(VerificationFailure):
    error = "Invalid email format"
    details = "The decrypted data does not contain a valid email address"


class InvalidTimestamp(VerificationFailure):
    error = "Invalid timestamp"
    details = "The signature contains an invalid timestamp"
