"""
Unit tests for the JPEG EXIF signature normalizer.
"""

import io

import piexif
import pytest
from PIL import Image

from imagesign.errors import MetadataEmbedFailure
from imagesign.media.jpeg import (
    DESCRIPTION_TAG,
    SOFTWARE_TAG,
    JpegNormalizer,
    empty_exif,
    insert_exif,
    load_exif,
)
from imagesign.payload import SignaturePayload

RECORD = SignaturePayload(
    signature="c2ln",
    email="aa:bb",
    timestamp="2024-05-01T12:00:00.000Z",
    original_buffer_hash="00" * 32,
)


def _jpeg_with_exif(tags) -> bytes:
    exif_dict = empty_exif()
    exif_dict["0th"].update(tags)
    img = Image.new("RGB", (10, 10), color="blue")
    buffer = io.BytesIO()
    img.save(buffer, "JPEG", exif=piexif.dump(exif_dict))
    return buffer.getvalue()


def _scan_data(data: bytes) -> bytes:
    """Everything from the start-of-scan marker on."""
    return data[data.index(b"\xff\xda") :]


class TestExifHelpers:
    """Tests for load_exif() / insert_exif()."""

    def test_load_without_exif(self, jpeg_bytes):
        exif_dict = load_exif(jpeg_bytes)
        assert exif_dict["0th"] == {}
        assert set(exif_dict) >= {"0th", "Exif", "GPS", "Interop", "1st"}

    def test_insert_and_load(self, jpeg_bytes):
        exif_dict = empty_exif()
        exif_dict["0th"][DESCRIPTION_TAG] = "hello"
        updated = insert_exif(exif_dict, jpeg_bytes)
        assert load_exif(updated)["0th"][DESCRIPTION_TAG] == b"hello"

    def test_insert_keeps_scan_data(self, jpeg_bytes):
        exif_dict = empty_exif()
        exif_dict["0th"][DESCRIPTION_TAG] = "hello"
        assert _scan_data(insert_exif(exif_dict, jpeg_bytes)) == _scan_data(jpeg_bytes)


class TestJpegNormalizer:
    """Tests for JpegNormalizer."""

    def test_prepare_embeds_placeholder_and_software(self, jpeg_bytes):
        canonical = JpegNormalizer(software="Test Suite").prepare(jpeg_bytes, RECORD.placeholder())
        zeroth = piexif.load(canonical)["0th"]
        assert zeroth[DESCRIPTION_TAG].decode() == RECORD.placeholder().to_json()
        assert zeroth[SOFTWARE_TAG] == b"Test Suite"

    def test_finalize_and_extract(self, jpeg_bytes):
        normalizer = JpegNormalizer()
        canonical = normalizer.prepare(jpeg_bytes, RECORD.placeholder())
        signed = normalizer.finalize(canonical, RECORD)
        assert normalizer.extract(signed) == RECORD.to_json()

    def test_canonical_bytes_match_prepare(self, jpeg_bytes):
        """Restoring the placeholder reproduces the signed bytes exactly."""
        normalizer = JpegNormalizer()
        canonical = normalizer.prepare(jpeg_bytes, RECORD.placeholder())
        signed = normalizer.finalize(canonical, RECORD)

        assert signed != canonical
        assert normalizer.canonical_bytes(signed, RECORD) == canonical

    def test_preserves_existing_tags(self):
        """Other EXIF tags of the input survive signing."""
        data = _jpeg_with_exif({piexif.ImageIFD.Make: b"Canon"})
        normalizer = JpegNormalizer()
        canonical = normalizer.prepare(data, RECORD.placeholder())
        signed = normalizer.finalize(canonical, RECORD)

        assert piexif.load(signed)["0th"][piexif.ImageIFD.Make] == b"Canon"
        assert normalizer.canonical_bytes(signed, RECORD) == canonical

    def test_extract_ignores_ordinary_description(self):
        """A photo caption is not mistaken for a signature record."""
        data = _jpeg_with_exif({DESCRIPTION_TAG: b"Holiday photo"})
        assert JpegNormalizer().extract(data) is None

    def test_extract_without_exif(self, jpeg_bytes):
        assert JpegNormalizer().extract(jpeg_bytes) is None

    def test_extract_legacy_record(self):
        data = _jpeg_with_exif({DESCRIPTION_TAG: b"signed:aa:bb:2024-05-01T12:00:00.000Z"})
        assert JpegNormalizer().extract(data).startswith("signed:")

    def test_content_hash_is_input_digest(self, jpeg_bytes):
        import hashlib

        assert JpegNormalizer().content_hash(jpeg_bytes) == hashlib.sha256(jpeg_bytes).hexdigest()

    def test_embed_failure(self, jpeg_bytes, monkeypatch):
        """piexif errors surface as MetadataEmbedFailure."""

        def broken_dump(exif_dict):
            raise ValueError("boom")

        monkeypatch.setattr(piexif, "dump", broken_dump)
        with pytest.raises(MetadataEmbedFailure):
            JpegNormalizer().prepare(jpeg_bytes, RECORD.placeholder())
