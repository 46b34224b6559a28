# imagesign/media/png.py
"""
PNG chunk codec and signature normalizer.

A signed PNG carries its record in a ``tEXt`` chunk with keyword
``Signature`` placed immediately before ``IEND``. The canonical bytes are
the file re-encoded from its chunks with every signature chunk removed,
so they can be rebuilt from a signed file by removing that chunk again.
"""

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import List, Optional

from imagesign.errors import MetadataEmbedFailure
from imagesign.media.formats import PNG_SIGNATURE, MetadataNormalizer
from imagesign.payload import SignaturePayload, sha256_hex

logger = logging.getLogger(__name__)

SIGNATURE_KEYWORD = "Signature"
TEXT_CHUNK = "tEXt"
END_CHUNK = "IEND"


class PngChunkError(ValueError):
    """PNG data could not be split into valid chunks."""


@dataclass(frozen=True)
class Chunk:
    """A single PNG chunk: four-letter type and raw data."""

    name: str
    data: bytes

    def encode(self) -> bytes:
        type_bytes = self.name.encode("ascii")
        crc = zlib.crc32(type_bytes + self.data) & 0xFFFFFFFF
        return struct.pack(">I", len(self.data)) + type_bytes + self.data + struct.pack(">I", crc)


def extract_chunks(data: bytes) -> List[Chunk]:
    """
    Split PNG bytes into chunks.

    Raises:
        PngChunkError: Bad signature, truncated chunk, CRC mismatch or
            missing IEND.
    """
    if not data.startswith(PNG_SIGNATURE):
        raise PngChunkError("Invalid PNG signature")

    chunks: List[Chunk] = []
    offset = len(PNG_SIGNATURE)
    while offset < len(data):
        if offset + 8 > len(data):
            raise PngChunkError(f"Truncated chunk header at offset {offset}")
        (length,) = struct.unpack(">I", data[offset : offset + 4])
        type_bytes = data[offset + 4 : offset + 8]
        end = offset + 8 + length + 4
        if end > len(data):
            raise PngChunkError(f"Truncated chunk {type_bytes!r} at offset {offset}")

        chunk_data = data[offset + 8 : offset + 8 + length]
        (crc,) = struct.unpack(">I", data[end - 4 : end])
        if crc != zlib.crc32(type_bytes + chunk_data) & 0xFFFFFFFF:
            raise PngChunkError(f"CRC mismatch in chunk {type_bytes!r}")

        try:
            name = type_bytes.decode("ascii")
        except UnicodeDecodeError:
            raise PngChunkError(f"Invalid chunk type {type_bytes!r}")

        chunks.append(Chunk(name, chunk_data))
        offset = end
        if name == END_CHUNK:
            break

    if not chunks or chunks[-1].name != END_CHUNK:
        raise PngChunkError("PNG is missing the IEND chunk")
    return chunks


def encode_chunks(chunks: List[Chunk]) -> bytes:
    return PNG_SIGNATURE + b"".join(chunk.encode() for chunk in chunks)


def encode_text_chunk(keyword: str, text: str) -> Chunk:
    """Build a ``tEXt`` chunk (Latin-1 keyword and text, NUL separated)."""
    if not 1 <= len(keyword) <= 79:
        raise ValueError("tEXt keyword must be 1-79 characters")
    return Chunk(TEXT_CHUNK, keyword.encode("latin-1") + b"\x00" + text.encode("latin-1"))


def decode_text_chunk(chunk: Chunk):
    """
    Decode a ``tEXt`` chunk into ``(keyword, text)``.

    Raises:
        ValueError: If the chunk has no keyword separator.
    """
    if chunk.name != TEXT_CHUNK:
        raise ValueError(f"Not a text chunk: {chunk.name}")
    separator = chunk.data.find(b"\x00")
    if separator < 1:
        raise ValueError("Malformed tEXt chunk")
    return chunk.data[:separator].decode("latin-1"), chunk.data[separator + 1 :].decode("latin-1")


def _is_signature_chunk(chunk: Chunk) -> bool:
    if chunk.name != TEXT_CHUNK:
        return False
    try:
        keyword, _ = decode_text_chunk(chunk)
    except ValueError:
        # Undecodable text chunks are not ours; keep them.
        return False
    return keyword == SIGNATURE_KEYWORD


def strip_signature_chunks(chunks: List[Chunk]) -> List[Chunk]:
    return [chunk for chunk in chunks if not _is_signature_chunk(chunk)]


class PngNormalizer(MetadataNormalizer):
    """Signature chunk handling for PNG."""

    def _normalized(self, data: bytes) -> bytes:
        try:
            chunks = extract_chunks(data)
        except PngChunkError as e:
            raise MetadataEmbedFailure(f"PNG chunk processing failed: {e}")
        return encode_chunks(strip_signature_chunks(chunks))

    def content_hash(self, data: bytes) -> str:
        return sha256_hex(self._normalized(data))

    def prepare(self, data: bytes, placeholder: SignaturePayload) -> bytes:
        normalized = self._normalized(data)
        logger.debug(f"Normalized PNG size: {len(normalized)} (original: {len(data)})")
        return normalized

    def finalize(self, canonical: bytes, record: SignaturePayload) -> bytes:
        try:
            chunks = strip_signature_chunks(extract_chunks(canonical))
            text_chunk = encode_text_chunk(SIGNATURE_KEYWORD, record.to_json())
        except (PngChunkError, ValueError) as e:
            raise MetadataEmbedFailure(f"PNG signature embedding failed: {e}")

        chunks.insert(len(chunks) - 1, text_chunk)
        signed = encode_chunks(chunks)
        logger.debug(f"PNG signature embedded, final size: {len(signed)}")
        return signed

    def extract(self, data: bytes) -> Optional[str]:
        """
        Return the first ``Signature`` text chunk.

        Raises:
            PngChunkError: If the file cannot be split into chunks.
        """
        for chunk in extract_chunks(data):
            if not _is_signature_chunk(chunk):
                continue
            _, text = decode_text_chunk(chunk)
            return text
        return None

    def canonical_bytes(self, data: bytes, record: SignaturePayload) -> bytes:
        """
        Rebuild canonical bytes by removing the signature chunk.

        Raises:
            PngChunkError: If the file cannot be split into chunks.
        """
        return encode_chunks(strip_signature_chunks(extract_chunks(data)))
