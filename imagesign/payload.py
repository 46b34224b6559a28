"""
Signable-Payload Builder and the embedded signature record.

The bytes that get signed are the canonical image bytes followed by the
UTF-8 identity token and the UTF-8 timestamp, in that order. The record
embedded in the image is compact JSON with a fixed key order so that the
placeholder written before signing serializes identically at verify time.
"""

import hashlib
import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from imagesign.errors import InvalidSignatureFormat

LEGACY_PREFIX = "signed:"

_RECORD_FIELDS = ("signature", "email", "timestamp", "originalBufferHash")


def build_signable_payload(canonical_bytes: bytes, encrypted_identity: str, timestamp: str) -> bytes:
    """Concatenate canonical bytes, identity token and timestamp."""
    return b"".join(
        [
            canonical_bytes,
            encrypted_identity.encode("utf-8"),
            timestamp.encode("utf-8"),
        ]
    )


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a moment as UTC ISO-8601 with millisecond precision.

    Example: ``2024-05-01T12:00:00.000Z``
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 date.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("Timestamp must be a non-empty string")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SignaturePayload:
    """The signature record embedded in image metadata."""

    signature: str
    email: str
    timestamp: str
    original_buffer_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "signature": self.signature,
            "email": self.email,
            "timestamp": self.timestamp,
            "originalBufferHash": self.original_buffer_hash,
        }

    def to_json(self) -> str:
        """Compact JSON, keys in wire order."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, json_str: str) -> "SignaturePayload":
        """
        Parse a JSON record.

        Raises:
            InvalidSignatureFormat: If the JSON is malformed or fields are missing.
        """
        try:
            data = json.loads(json_str)
        except (TypeError, ValueError):
            raise InvalidSignatureFormat("Signature metadata is not valid JSON")
        if not isinstance(data, dict):
            raise InvalidSignatureFormat("Signature metadata is not a JSON object")

        missing = [name for name in _RECORD_FIELDS if not isinstance(data.get(name), str)]
        if missing:
            raise InvalidSignatureFormat(f"Signature metadata is missing fields: {', '.join(missing)}")

        return cls(
            signature=data["signature"],
            email=data["email"],
            timestamp=data["timestamp"],
            original_buffer_hash=data["originalBufferHash"],
        )

    def placeholder(self) -> "SignaturePayload":
        """The same record with the signature value blanked."""
        return replace(self, signature="")

    def with_signature(self, signature: str) -> "SignaturePayload":
        return replace(self, signature=signature)

    @property
    def is_placeholder(self) -> bool:
        return self.signature == ""


@dataclass(frozen=True)
class LegacyPayload:
    """
    Colon-delimited record written by early versions.

    ``signed:<encryptedIdentity>:<timestamp>``. It carries no digital
    signature and is never trusted.
    """

    email: str
    timestamp: str

    @classmethod
    def parse(cls, record: str) -> "LegacyPayload":
        if not record.startswith(LEGACY_PREFIX):
            raise InvalidSignatureFormat("Not a legacy signature record")
        # The token itself contains a colon (iv:ciphertext) and so does the
        # timestamp, so only the prefix is split off and the token is the
        # next two colon-separated parts.
        body = record[len(LEGACY_PREFIX) :]
        parts = body.split(":", 2)
        if len(parts) == 2:
            email, timestamp = parts
        elif len(parts) == 3:
            email, timestamp = f"{parts[0]}:{parts[1]}", parts[2]
        else:
            raise InvalidSignatureFormat("Legacy signature record is incomplete")
        if not email or not timestamp:
            raise InvalidSignatureFormat("Legacy signature record is incomplete")
        return cls(email=email, timestamp=timestamp)


def parse_signature_record(record: Union[str, bytes]) -> Union[SignaturePayload, LegacyPayload]:
    """
    Parse an embedded record in either the JSON or the legacy form.

    Raises:
        InvalidSignatureFormat: If the record is neither.
    """
    if isinstance(record, bytes):
        record = record.decode("utf-8", errors="replace")
    text = record.strip().rstrip("\x00")
    if text.startswith("{"):
        return SignaturePayload.from_json(text)
    if text.startswith(LEGACY_PREFIX):
        return LegacyPayload.parse(text)
    raise InvalidSignatureFormat()


def is_signature_record(record: Any) -> bool:
    """Cheap check whether an embedded string looks like one of our records."""
    if isinstance(record, bytes):
        record = record.decode("utf-8", errors="replace")
    if not isinstance(record, str):
        return False
    text = record.strip()
    if text.startswith(LEGACY_PREFIX):
        return True
    return text.startswith("{") and '"signature"' in text
