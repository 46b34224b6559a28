"""
Key material handling.

Signing keys reach the process as environment values in one of several
shapes: PEM text, base64 of PEM text, raw base64 DER, or a JWK document.
``normalize_key`` runs an ordered list of parsers over the material and
returns the first match as a tagged ``NormalizedKey``; every parser is
idempotent, so normalizing an already normalized PEM returns it unchanged.
"""

import base64
import binascii
import json
import re
import textwrap
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)
from jwcrypto import jwk
from jwcrypto.common import JWException

from imagesign.errors import InvalidKeyMaterial


class KeyKind(str, Enum):
    """Which half of a keypair a piece of material is expected to be."""

    PRIVATE = "PRIVATE KEY"
    PUBLIC = "PUBLIC KEY"


class KeyForm(str, Enum):
    """Shape the key material was supplied in."""

    ENVELOPED = "enveloped"
    RAW_BASE64 = "raw_base64"
    JWK = "jwk"
    INVALID = "invalid"


@dataclass(frozen=True)
class NormalizedKey:
    """Result of key normalization: the detected form and PEM text."""

    form: KeyForm
    pem: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.form is not KeyForm.INVALID


_ENVELOPE_RE = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def _envelope_label(text: str) -> Optional[str]:
    match = _ENVELOPE_RE.search(text)
    return match.group(1) if match else None


def _is_envelope_for(text: str, kind: KeyKind) -> bool:
    label = _envelope_label(text)
    return label is not None and label.endswith(kind.value)


def _compact_base64(material: str) -> Optional[str]:
    """Strip whitespace and return the material if it is well-formed base64."""
    compact = "".join(material.split())
    if not compact or len(compact) % 4 or not _BASE64_RE.match(compact):
        return None
    return compact


def _parse_base64_envelope(material: str, kind: KeyKind) -> Optional[NormalizedKey]:
    compact = _compact_base64(material)
    if compact is None:
        return None
    decoded = base64.b64decode(compact)
    try:
        text = decoded.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if _is_envelope_for(text, kind):
        return NormalizedKey(KeyForm.ENVELOPED, text.strip() + "\n")
    return None


def _parse_envelope(material: str, kind: KeyKind) -> Optional[NormalizedKey]:
    if _is_envelope_for(material, kind):
        return NormalizedKey(KeyForm.ENVELOPED, material.strip() + "\n")
    return None


def _parse_jwk(material: str, kind: KeyKind) -> Optional[NormalizedKey]:
    stripped = material.strip()
    if not stripped.startswith("{"):
        return None
    try:
        key = jwk.JWK.from_json(stripped)
        if kind is KeyKind.PRIVATE:
            if not key.has_private:
                return None
            pem = key.export_to_pem(private_key=True, password=None)
        else:
            pem = key.export_to_pem()
    except (JWException, ValueError, TypeError, json.JSONDecodeError):
        return None
    return NormalizedKey(KeyForm.JWK, pem.decode("ascii"))


def _parse_raw_base64(material: str, kind: KeyKind) -> Optional[NormalizedKey]:
    compact = _compact_base64(material)
    if compact is None:
        return None
    body = "\n".join(textwrap.wrap(compact, 64))
    pem = f"-----BEGIN {kind.value}-----\n{body}\n-----END {kind.value}-----\n"
    return NormalizedKey(KeyForm.RAW_BASE64, pem)


_PARSERS: Tuple[Callable[[str, KeyKind], Optional[NormalizedKey]], ...] = (
    _parse_base64_envelope,
    _parse_envelope,
    _parse_jwk,
    _parse_raw_base64,
)


def normalize_key(material: Union[str, bytes], kind: KeyKind) -> NormalizedKey:
    """
    Normalize key material to PEM.

    Parsers are tried in order: base64-wrapped PEM, PEM text, JWK JSON,
    then raw base64 DER (wrapped in an envelope with 64-character lines).

    Args:
        material: Key material as supplied by configuration.
        kind: Whether a private or public key is expected.

    Returns:
        NormalizedKey; ``form`` is ``KeyForm.INVALID`` if nothing matched.
    """
    if isinstance(material, bytes):
        try:
            material = material.decode("utf-8")
        except UnicodeDecodeError:
            return NormalizedKey(KeyForm.INVALID)
    if not material or not material.strip():
        return NormalizedKey(KeyForm.INVALID)

    for parser in _PARSERS:
        result = parser(material, kind)
        if result is not None:
            return result
    return NormalizedKey(KeyForm.INVALID)


def load_private_key(material: Union[str, bytes]) -> PrivateKeyTypes:
    """Parse private key material in any supported form."""
    normalized = normalize_key(material, KeyKind.PRIVATE)
    if not normalized.is_valid:
        raise InvalidKeyMaterial("Private key material is not PEM, base64 or JWK")
    try:
        return serialization.load_pem_private_key(normalized.pem.encode("ascii"), password=None)
    except (ValueError, TypeError, binascii.Error) as e:
        raise InvalidKeyMaterial(f"Invalid private key: {e}")


def load_public_key(material: Union[str, bytes]) -> PublicKeyTypes:
    """Parse public key material in any supported form."""
    normalized = normalize_key(material, KeyKind.PUBLIC)
    if not normalized.is_valid:
        raise InvalidKeyMaterial("Public key material is not PEM, base64 or JWK")
    try:
        return serialization.load_pem_public_key(normalized.pem.encode("ascii"))
    except (ValueError, TypeError, binascii.Error) as e:
        raise InvalidKeyMaterial(f"Invalid public key: {e}")


# =============================================================================
# Key Generation
# =============================================================================


@dataclass(frozen=True)
class KeyPair:
    """A freshly generated keypair in PEM form."""

    algorithm: str
    private_key_pem: str
    public_key_pem: str

    @property
    def private_key_b64(self) -> str:
        """Base64 of the private PEM, the form expected in environment variables."""
        return base64.b64encode(self.private_key_pem.encode("ascii")).decode("ascii")

    @property
    def public_key_b64(self) -> str:
        """Base64 of the public PEM."""
        return base64.b64encode(self.public_key_pem.encode("ascii")).decode("ascii")


_JWK_PARAMS = {
    "ed25519": {"kty": "OKP", "crv": "Ed25519"},
    "rsa": {"kty": "RSA", "size": 2048},
    "ec": {"kty": "EC", "crv": "P-256"},
}

SUPPORTED_ALGORITHMS = tuple(_JWK_PARAMS)


def generate_keypair(algorithm: str = "ed25519") -> KeyPair:
    """
    Generate a new signing keypair.

    Args:
        algorithm: One of ``ed25519`` (default), ``rsa`` or ``ec``.

    Returns:
        KeyPair with PKCS#8 private and SubjectPublicKeyInfo public PEM.
    """
    params = _JWK_PARAMS.get(algorithm.lower())
    if params is None:
        raise ValueError(
            f"Unsupported key algorithm: {algorithm} (expected one of {', '.join(SUPPORTED_ALGORITHMS)})"
        )

    key = jwk.JWK.generate(**params)
    private_pem = key.export_to_pem(private_key=True, password=None).decode("ascii")
    public_pem = key.export_to_pem().decode("ascii")

    return KeyPair(algorithm=algorithm.lower(), private_key_pem=private_pem, public_key_pem=public_pem)
