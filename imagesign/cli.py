"""
imagesign Command Line Interface.

Provides commands for generating signing keys, signing images and
verifying signed images.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from imagesign.audit import LoggingAuditSink, record_sign, record_verify
from imagesign.config import SigningConfig
from imagesign.errors import ImageSignError
from imagesign.keys import SUPPORTED_ALGORITHMS, generate_keypair
from imagesign.media.native import sign_image, verify_image
from imagesign.validation import content_type_for_path, validate_image


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate a new signing keypair."""
    try:
        keypair = generate_keypair(args.algorithm)
    except ValueError as e:
        print(f"Error generating keys: {e}", file=sys.stderr)
        return 1

    if args.env:
        print(f"export IMAGESIGN_PRIVATE_KEY='{keypair.private_key_b64}'")
        print(f"export IMAGESIGN_PUBLIC_KEY='{keypair.public_key_b64}'")
    else:
        print(f"New {keypair.algorithm} signing keypair\n")
        print("--- PRIVATE KEY (Keep Secret / Set as IMAGESIGN_PRIVATE_KEY) ---")
        print(keypair.private_key_pem)
        print("--- PUBLIC KEY (Set as IMAGESIGN_PUBLIC_KEY) ---")
        print(keypair.public_key_pem)
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    """Sign an image file."""
    source = Path(args.image)
    if not source.is_file():
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1

    output = Path(args.output) if args.output else source.with_name(f"signed_{source.name}")
    content_type = args.content_type or content_type_for_path(source)

    try:
        config = SigningConfig.from_env()
        data = source.read_bytes()
        validate_image(data, content_type)
        result = sign_image(data, content_type, args.identity, config, strict=args.strict)
    except ImageSignError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output.write_bytes(result.data)

    if result.signed:
        record_sign(
            LoggingAuditSink(),
            args.identity,
            result.data,
            fileName=source.name,
            fileSize=len(data),
            fileType=content_type,
        )
        print(f"Signed image written to {output}")
    else:
        print(f"Warning: {result.warning}", file=sys.stderr)
        print(f"Unsigned image written to {output}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a signed image file."""
    source = Path(args.image)
    if not source.is_file():
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1

    try:
        config = SigningConfig.from_env(
            require_private_key=False, require_public_key=not args.public_key
        )
        data = source.read_bytes()
        validate_image(data, content_type_for_path(source))
    except ImageSignError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = verify_image(data, config, public_key=args.public_key)
    record_verify(LoggingAuditSink(), result, data, fileName=source.name, fileSize=len(data))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.verified:
        print("VALID")
        print(f"   Signed by: {result.email}")
        print(f"   Signed at: {result.timestamp}")
        print(f"   {result.details}")
    else:
        print("INVALID")
        print(f"   {result.error}: {result.details}")
    return 0 if result.verified else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagesign", description="Embed and verify signatures in image metadata"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_keygen = subparsers.add_parser("keygen", help="Generate a new signing keypair")
    p_keygen.add_argument(
        "--algorithm", default="ed25519", choices=SUPPORTED_ALGORITHMS, help="Key algorithm"
    )
    p_keygen.add_argument("--env", action="store_true", help="Output as environment variables")

    p_sign = subparsers.add_parser("sign", help="Sign an image")
    p_sign.add_argument("image", help="Image file to sign")
    p_sign.add_argument("--identity", required=True, help="Signer email address")
    p_sign.add_argument("-o", "--output", help="Output path (default: signed_<name>)")
    p_sign.add_argument("--content-type", help="Declared MIME type (default: from file suffix)")
    p_sign.add_argument(
        "--strict", action="store_true", help="Fail instead of writing an unsigned image"
    )

    p_verify = subparsers.add_parser("verify", help="Verify a signed image")
    p_verify.add_argument("image", help="Image file to verify")
    p_verify.add_argument("--public-key", help="Public key to verify with (PEM, base64 or JWK)")
    p_verify.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command == "keygen":
        return cmd_keygen(args)
    elif args.command == "sign":
        return cmd_sign(args)
    elif args.command == "verify":
        return cmd_verify(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
