# imagesign/config.py
"""
Centralized configuration for imagesign.

Tunables are read from environment variables with sensible defaults.
Key material and the identity secret are loaded once into an explicit,
immutable ``SigningConfig`` that callers pass to ``sign_image`` and
``verify_image``; core code never reads the environment itself.

Usage:
    from imagesign.config import SigningConfig

    config = SigningConfig.from_env()

Environment Variables:
    IMAGESIGN_PRIVATE_KEY: Signing key (PEM, base64 PEM, base64 DER or JWK)
    IMAGESIGN_PUBLIC_KEY: Verification key (same forms)
    IMAGESIGN_RETIRED_PUBLIC_KEYS: Comma-separated keys still accepted for verification
    IMAGESIGN_ENCRYPTION_SECRET: Secret the identity encryption key is derived from
    IMAGESIGN_SESSION_SECRET: Fallback for IMAGESIGN_ENCRYPTION_SECRET
    IMAGESIGN_MAX_FILE_SIZE: Maximum accepted image size in bytes (default: 5 MiB)
    IMAGESIGN_MAX_SIGNATURE_AGE_DAYS: Age after which verification warns (default: 365)
    IMAGESIGN_SOFTWARE_NAME: Value written to the EXIF Software tag
"""

import os
from dataclasses import dataclass, field
from typing import Final, List, Mapping, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from imagesign.errors import ConfigurationError
from imagesign.keys import load_private_key, load_public_key

# =============================================================================
# Tunables
# =============================================================================

MAX_FILE_SIZE: Final[int] = int(os.getenv("IMAGESIGN_MAX_FILE_SIZE", str(5 * 1024 * 1024)))

MAX_SIGNATURE_AGE_DAYS: Final[int] = int(os.getenv("IMAGESIGN_MAX_SIGNATURE_AGE_DAYS", "365"))

SOFTWARE_NAME: Final[str] = os.getenv("IMAGESIGN_SOFTWARE_NAME", "Image-Sign Application")

ALLOWED_CONTENT_TYPES: Final[Tuple[str, ...]] = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
)

# =============================================================================
# Key material
# =============================================================================

ENV_PRIVATE_KEY = "IMAGESIGN_PRIVATE_KEY"
ENV_PUBLIC_KEY = "IMAGESIGN_PUBLIC_KEY"
ENV_RETIRED_PUBLIC_KEYS = "IMAGESIGN_RETIRED_PUBLIC_KEYS"
ENV_ENCRYPTION_SECRET = "IMAGESIGN_ENCRYPTION_SECRET"
ENV_SESSION_SECRET = "IMAGESIGN_SESSION_SECRET"

_PLACEHOLDER_VALUES = {
    ENV_PRIVATE_KEY: "your_private_key_here",
    ENV_PUBLIC_KEY: "your_public_key_here",
    ENV_ENCRYPTION_SECRET: "your_encryption_secret_here",
    ENV_SESSION_SECRET: "your_session_secret_here",
}


@dataclass(frozen=True)
class SigningConfig:
    """
    Process-wide signing configuration.

    Constructed once at startup and passed by reference into the sign and
    verify orchestrators. Either key may be absent for a sign-only or
    verify-only deployment.
    """

    encryption_secret: str
    private_key: Optional[PrivateKeyTypes] = None
    public_key: Optional[PublicKeyTypes] = None
    retired_public_keys: Tuple[PublicKeyTypes, ...] = field(default_factory=tuple)
    max_signature_age_days: int = MAX_SIGNATURE_AGE_DAYS
    software_name: str = SOFTWARE_NAME

    def __post_init__(self):
        if not self.encryption_secret:
            raise ConfigurationError("An identity encryption secret is required")

    @property
    def verification_keys(self) -> Tuple[PublicKeyTypes, ...]:
        """Current public key first, then retired keys."""
        keys = (self.public_key,) if self.public_key is not None else ()
        return keys + tuple(self.retired_public_keys)

    def require_private_key(self) -> PrivateKeyTypes:
        if self.private_key is None:
            raise ConfigurationError(f"{ENV_PRIVATE_KEY} is not configured; signing is unavailable")
        return self.private_key

    @classmethod
    def from_key_material(
        cls,
        encryption_secret: str,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        retired_public_keys: Optional[List[str]] = None,
        **kwargs,
    ) -> "SigningConfig":
        """
        Build a config from key material strings in any supported form.

        Raises:
            ConfigurationError: If any key cannot be parsed.
        """
        errors = []
        loaded_private = loaded_public = None
        retired = []

        if private_key:
            try:
                loaded_private = load_private_key(private_key)
            except ValueError as e:
                errors.append(f"private key: {e}")
        if public_key:
            try:
                loaded_public = load_public_key(public_key)
            except ValueError as e:
                errors.append(f"public key: {e}")
        for index, material in enumerate(retired_public_keys or []):
            try:
                retired.append(load_public_key(material))
            except ValueError as e:
                errors.append(f"retired public key #{index + 1}: {e}")

        if errors:
            raise ConfigurationError("Invalid key material:\n  " + "\n  ".join(errors))

        return cls(
            encryption_secret=encryption_secret,
            private_key=loaded_private,
            public_key=loaded_public,
            retired_public_keys=tuple(retired),
            **kwargs,
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        require_private_key: bool = True,
        require_public_key: bool = True,
    ) -> "SigningConfig":
        """
        Load configuration from environment variables.

        All problems are collected and reported in one ConfigurationError.

        Args:
            environ: Mapping to read from (default: ``os.environ``).
            require_private_key: Set False for verify-only deployments.
            require_public_key: Set False when keys are supplied per call.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str:
            return (env.get(name) or "").strip()

        errors = []
        required = []
        if require_private_key:
            required.append(ENV_PRIVATE_KEY)
        if require_public_key:
            required.append(ENV_PUBLIC_KEY)

        for name in required:
            if not get(name):
                errors.append(f"{name} is not set or empty")
            elif get(name) == _PLACEHOLDER_VALUES[name]:
                errors.append(f"{name} contains placeholder value")

        secret_name = ENV_ENCRYPTION_SECRET if get(ENV_ENCRYPTION_SECRET) else ENV_SESSION_SECRET
        secret = get(secret_name)
        if not secret:
            errors.append(f"{ENV_ENCRYPTION_SECRET} (or {ENV_SESSION_SECRET}) is not set or empty")
        elif secret == _PLACEHOLDER_VALUES[secret_name]:
            errors.append(f"{secret_name} contains placeholder value")

        if errors:
            raise ConfigurationError(
                "Missing or invalid environment variables:\n  " + "\n  ".join(errors)
            )

        retired = [item for item in get(ENV_RETIRED_PUBLIC_KEYS).split(",") if item.strip()]

        return cls.from_key_material(
            encryption_secret=secret,
            private_key=get(ENV_PRIVATE_KEY) or None,
            public_key=get(ENV_PUBLIC_KEY) or None,
            retired_public_keys=retired,
        )


# =============================================================================
# Configuration Summary (for debugging)
# =============================================================================


def print_config() -> None:
    """Print current non-secret configuration."""
    print("imagesign configuration:")
    print(f"  MAX_FILE_SIZE:          {MAX_FILE_SIZE}")
    print(f"  MAX_SIGNATURE_AGE_DAYS: {MAX_SIGNATURE_AGE_DAYS}")
    print(f"  SOFTWARE_NAME:          {SOFTWARE_NAME}")
    print(f"  ALLOWED_CONTENT_TYPES:  {', '.join(ALLOWED_CONTENT_TYPES)}")
    for name in (ENV_PRIVATE_KEY, ENV_PUBLIC_KEY, ENV_ENCRYPTION_SECRET):
        print(f"  {name}: {'set' if os.getenv(name) else 'not set'}")


if __name__ == "__main__":
    print_config()
