"""
Identity Encryption Codec.

Encrypts the signer's identity (an email address) into an opaque
``iv_hex:ciphertext_hex`` token so it can be embedded in public image
metadata and recovered by anyone holding the deployment secret.

AES-256-CBC with PKCS#7 padding; the key is derived with scrypt from the
deployment secret and a fixed salt, so tokens issued by any instance of a
deployment decrypt on every other instance.
"""

import functools
import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from imagesign.errors import DecryptionFailed, MalformedToken

logger = logging.getLogger(__name__)

SCRYPT_SALT = b"salt"
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 32
IV_LENGTH = 16
TOKEN_SEPARATOR = ":"


@functools.lru_cache(maxsize=16)
def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES key for a deployment secret."""
    if not secret:
        raise ValueError("Identity encryption requires a non-empty secret")
    kdf = Scrypt(salt=SCRYPT_SALT, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


def encrypt_identity(identity: str, secret: str) -> str:
    """
    Encrypt an identity string into a transportable token.

    A fresh random IV is drawn on every call, so encrypting the same
    identity twice yields different tokens.

    Args:
        identity: Plaintext identity (e.g. an email address).
        secret: Deployment secret the AES key is derived from.

    Returns:
        Token of the form ``iv_hex:ciphertext_hex``.
    """
    key = derive_key(secret)
    iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(identity.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return f"{iv.hex()}{TOKEN_SEPARATOR}{ciphertext.hex()}"


def parse_token(token: str):
    """
    Split a token into its raw IV and ciphertext.

    Raises:
        MalformedToken: If the token is not two hex parts of valid lengths.
    """
    if not isinstance(token, str):
        raise MalformedToken("Token must be a string")

    parts = token.split(TOKEN_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedToken("Invalid encrypted data format")

    try:
        iv = bytes.fromhex(parts[0])
        ciphertext = bytes.fromhex(parts[1])
    except ValueError:
        raise MalformedToken("Token parts are not valid hex")

    if len(iv) != IV_LENGTH:
        raise MalformedToken(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")
    block_bytes = algorithms.AES.block_size // 8
    if len(ciphertext) % block_bytes:
        raise MalformedToken("Ciphertext length is not a multiple of the block size")

    return iv, ciphertext


def decrypt_identity(token: str, secret: str) -> str:
    """
    Recover the plaintext identity from a token.

    Raises:
        MalformedToken: Token structure is invalid.
        DecryptionFailed: Wrong secret, corrupted ciphertext or bad padding.
    """
    iv, ciphertext = parse_token(token)
    key = derive_key(secret)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Identity decryption failed: {e}")
        raise DecryptionFailed("Unable to decrypt identity token")
