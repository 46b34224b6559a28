# imagesign/media/jpeg.py
"""
JPEG EXIF signature normalizer.

The record is stored as JSON in the ``ImageDescription`` tag of the 0th
IFD. Because the EXIF block's serialized size depends on the record, the
bytes that get signed are the JPEG with a *placeholder* record (signature
value blanked) already embedded. At verify time the placeholder is
restored from the delivered file's own EXIF block and re-serialized, which
reproduces the signed bytes exactly.

Only the EXIF segment is rewritten; the compressed image data is copied
byte for byte.
"""

import io
import logging
import struct
from typing import Any, Dict, Optional

import piexif

from imagesign.config import SOFTWARE_NAME
from imagesign.errors import MetadataEmbedFailure
from imagesign.media.formats import MetadataNormalizer
from imagesign.payload import SignaturePayload, is_signature_record, sha256_hex

logger = logging.getLogger(__name__)

DESCRIPTION_TAG = piexif.ImageIFD.ImageDescription
SOFTWARE_TAG = piexif.ImageIFD.Software

_PIEXIF_ERRORS = (ValueError, TypeError, KeyError, IndexError, struct.error)


def empty_exif() -> Dict[str, Any]:
    return {"0th": {}, "Exif": {}, "GPS": {}, "Interop": {}, "1st": {}, "thumbnail": None}


def load_exif(data: bytes) -> Dict[str, Any]:
    """Load the EXIF dictionary of a JPEG, or an empty one if absent or unreadable."""
    try:
        exif_dict = piexif.load(data)
    except _PIEXIF_ERRORS as e:
        logger.debug(f"No usable EXIF found, creating new structure: {e}")
        return empty_exif()

    for ifd, default in empty_exif().items():
        if exif_dict.get(ifd) is None:
            exif_dict[ifd] = default
    return exif_dict


def insert_exif(exif_dict: Dict[str, Any], data: bytes) -> bytes:
    """Serialize an EXIF dictionary and insert it into JPEG bytes."""
    exif_bytes = piexif.dump(exif_dict)
    output = io.BytesIO()
    piexif.insert(exif_bytes, data, output)
    return output.getvalue()


def _decode_tag(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        return value.rstrip(b"\x00").decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return None


class JpegNormalizer(MetadataNormalizer):
    """EXIF ImageDescription handling for JPEG."""

    def __init__(self, software: str = SOFTWARE_NAME):
        self.software = software

    def _with_description(self, data: bytes, record: SignaturePayload) -> bytes:
        """Rewrite the description tag of a JPEG's own EXIF block."""
        try:
            exif_dict = piexif.load(data)
            exif_dict["0th"][DESCRIPTION_TAG] = record.to_json()
            return insert_exif(exif_dict, data)
        except _PIEXIF_ERRORS as e:
            raise MetadataEmbedFailure(f"EXIF embedding failed: {e}")

    def content_hash(self, data: bytes) -> str:
        return sha256_hex(data)

    def prepare(self, data: bytes, placeholder: SignaturePayload) -> bytes:
        exif_dict = load_exif(data)
        exif_dict["0th"][DESCRIPTION_TAG] = placeholder.to_json()
        exif_dict["0th"][SOFTWARE_TAG] = self.software

        try:
            staged = insert_exif(exif_dict, data)
        except _PIEXIF_ERRORS as e:
            raise MetadataEmbedFailure(f"EXIF embedding failed: {e}")

        # Pass the staged file through the verify-side path so both sides
        # serialize from an EXIF block that has been through piexif.load.
        canonical = self._with_description(staged, placeholder)
        logger.debug(f"JPEG body with placeholder EXIF created for signing, size: {len(canonical)}")
        return canonical

    def finalize(self, canonical: bytes, record: SignaturePayload) -> bytes:
        signed = self._with_description(canonical, record)
        logger.debug(f"JPEG EXIF signature embedded, final size: {len(signed)}")
        return signed

    def extract(self, data: bytes) -> Optional[str]:
        try:
            exif_dict = piexif.load(data)
        except _PIEXIF_ERRORS as e:
            logger.warning(f"Failed to extract EXIF data: {e}")
            return None

        description = _decode_tag((exif_dict.get("0th") or {}).get(DESCRIPTION_TAG))
        if description and is_signature_record(description):
            return description
        return None

    def canonical_bytes(self, data: bytes, record: SignaturePayload) -> bytes:
        return self._with_description(data, record.placeholder())
