"""
Shared pytest fixtures for imagesign tests.
"""

import io

import pytest
from PIL import Image

from imagesign.config import SigningConfig
from imagesign.keys import KeyPair, generate_keypair

SECRET = "s3cr3t"
IDENTITY = "a@example.com"


def make_image(fmt: str, size=(10, 10), color="red", **save_kwargs) -> bytes:
    """Render a solid-colour test image in the given Pillow format."""
    img = Image.new("RGB", size, color=color)
    if fmt == "GIF":
        img = img.convert("P")
    buffer = io.BytesIO()
    img.save(buffer, fmt, **save_kwargs)
    return buffer.getvalue()


def config_for(keypair: KeyPair, secret: str = SECRET, **kwargs) -> SigningConfig:
    return SigningConfig.from_key_material(
        encryption_secret=secret,
        private_key=keypair.private_key_pem,
        public_key=keypair.public_key_pem,
        **kwargs,
    )


@pytest.fixture(scope="session")
def ed25519_keypair() -> KeyPair:
    """Ed25519 keypair shared across the session."""
    return generate_keypair("ed25519")


@pytest.fixture(scope="session")
def rsa_keypair() -> KeyPair:
    """RSA-2048 keypair shared across the session (generation is slow)."""
    return generate_keypair("rsa")


@pytest.fixture(scope="session")
def ec_keypair() -> KeyPair:
    """ECDSA P-256 keypair shared across the session."""
    return generate_keypair("ec")


@pytest.fixture(params=["ed25519", "rsa", "ec"])
def any_keypair(request, ed25519_keypair, rsa_keypair, ec_keypair) -> KeyPair:
    """Each supported key algorithm in turn."""
    return {"ed25519": ed25519_keypair, "rsa": rsa_keypair, "ec": ec_keypair}[request.param]


@pytest.fixture
def config(ed25519_keypair) -> SigningConfig:
    """Signing config with an Ed25519 key and the test secret."""
    return config_for(ed25519_keypair)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG")


@pytest.fixture
def gif_bytes() -> bytes:
    return make_image("GIF")


@pytest.fixture
def webp_bytes() -> bytes:
    return make_image("WEBP")
