"""
Signature Engine - signs and verifies arbitrary byte payloads.

Two scheme families are supported and tried in a fixed order:

1. Pure EdDSA (Ed25519, Ed448): the payload is signed directly, no digest.
2. SHA-256 hash-then-sign: RSA (PKCS#1 v1.5) and ECDSA (DER signatures).

Whichever scheme accepts the key, it signs the exact payload bytes it was
given; the scheme never changes what is signed.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from imagesign.errors import SignatureAlgorithmFailure
from imagesign.keys import load_private_key, load_public_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureScheme:
    """A signing scheme and the key types it accepts."""

    name: str
    private_types: Tuple[type, ...]
    public_types: Tuple[type, ...]
    sign: Callable[[PrivateKeyTypes, bytes], bytes]
    verify: Callable[[PublicKeyTypes, bytes, bytes], None]


EDDSA = SignatureScheme(
    name="EdDSA",
    private_types=(ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey),
    public_types=(ed25519.Ed25519PublicKey, ed448.Ed448PublicKey),
    sign=lambda key, data: key.sign(data),
    verify=lambda key, signature, data: key.verify(signature, data),
)

RSA_SHA256 = SignatureScheme(
    name="RS256",
    private_types=(rsa.RSAPrivateKey,),
    public_types=(rsa.RSAPublicKey,),
    sign=lambda key, data: key.sign(data, padding.PKCS1v15(), hashes.SHA256()),
    verify=lambda key, signature, data: key.verify(
        signature, data, padding.PKCS1v15(), hashes.SHA256()
    ),
)

ECDSA_SHA256 = SignatureScheme(
    name="ES256",
    private_types=(ec.EllipticCurvePrivateKey,),
    public_types=(ec.EllipticCurvePublicKey,),
    sign=lambda key, data: key.sign(data, ec.ECDSA(hashes.SHA256())),
    verify=lambda key, signature, data: key.verify(signature, data, ec.ECDSA(hashes.SHA256())),
)

# EdDSA first, then the hash-then-sign family.
SCHEMES: Tuple[SignatureScheme, ...] = (EDDSA, RSA_SHA256, ECDSA_SHA256)


def scheme_for_private_key(private_key: PrivateKeyTypes) -> Optional[SignatureScheme]:
    """Return the first scheme accepting this private key, if any."""
    for scheme in SCHEMES:
        if isinstance(private_key, scheme.private_types):
            return scheme
    return None


def scheme_for_public_key(public_key: PublicKeyTypes) -> Optional[SignatureScheme]:
    """Return the first scheme accepting this public key, if any."""
    for scheme in SCHEMES:
        if isinstance(public_key, scheme.public_types):
            return scheme
    return None


def sign_payload(payload: bytes, private_key: Union[PrivateKeyTypes, str, bytes]) -> str:
    """
    Sign a payload and return the base64 signature.

    Args:
        payload: Exact bytes to sign.
        private_key: A loaded private key, or key material in any form
            accepted by ``imagesign.keys.load_private_key``.

    Returns:
        Base64-encoded signature.

    Raises:
        SignatureAlgorithmFailure: No scheme accepts the key, or the
            underlying library rejected it.
        InvalidKeyMaterial: Key material was given that could not be parsed.
    """
    if isinstance(private_key, (str, bytes)):
        private_key = load_private_key(private_key)

    scheme = scheme_for_private_key(private_key)
    if scheme is None:
        raise SignatureAlgorithmFailure(
            f"Unable to sign with EdDSA or SHA-256 schemes: unsupported key type {type(private_key).__name__}"
        )

    try:
        signature = scheme.sign(private_key, payload)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SignatureAlgorithmFailure(f"{scheme.name} signing failed: {e}")

    logger.debug(f"Signed {len(payload)} bytes with {scheme.name}")
    return base64.b64encode(signature).decode("ascii")


def verify_payload(
    payload: bytes,
    public_key: Union[PublicKeyTypes, str, bytes],
    signature_b64: str,
) -> bool:
    """
    Verify a base64 signature over a payload.

    Returns False, never raises, for a bad signature, malformed base64,
    unparseable key material or a key no scheme accepts.
    """
    if isinstance(public_key, (str, bytes)):
        try:
            public_key = load_public_key(public_key)
        except ValueError as e:
            logger.debug(f"Verification key rejected: {e}")
            return False

    scheme = scheme_for_public_key(public_key)
    if scheme is None:
        logger.debug(f"No signature scheme for key type {type(public_key).__name__}")
        return False

    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError, TypeError):
        logger.debug("Signature is not valid base64")
        return False

    try:
        scheme.verify(public_key, signature, payload)
        return True
    except InvalidSignature:
        logger.debug(f"{scheme.name} signature did not verify")
        return False
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.debug(f"{scheme.name} verification error: {e}")
        return False
