#!/usr/bin/env python3
"""Generate the RSA key pair used to sign tokens"""

import argparse
import os
from pathlib import Path

from authserver.core.config import settings
from authserver.core.security import rsa_key_manager


def generate_rsa_keys(private_key_path: Path, public_key_path: Path, key_size: int = 2048) -> None:
    """
    Generate an RSA key pair and write it as PEM files

    Args:
        private_key_path: Destination of the PKCS8 private key
        public_key_path: Destination of the SubjectPublicKeyInfo public key
        key_size: Size of RSA key in bits
    """
    print(f"Generating RSA key pair ({key_size} bits)...")
    rsa_key_manager.generate_keys(key_size=key_size, persist=False)

    for path, pem, mode in (
        (private_key_path, rsa_key_manager.get_private_key_pem(), 0o600),
        (public_key_path, rsa_key_manager.get_public_key_pem(), 0o644),
    ):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(pem)
        os.chmod(path, mode)
        print(f"✓ Saved {path} ({oct(mode)[2:]})")

    print(f"✓ Key ID: {rsa_key_manager.kid}")


def main():
    parser = argparse.ArgumentParser(description="Generate RSA key pair for token signing")
    parser.add_argument(
        "--private-key",
        default=settings.private_key_path,
        help=f"Private key path (default: {settings.private_key_path})",
    )
    parser.add_argument(
        "--public-key",
        default=settings.public_key_path,
        help=f"Public key path (default: {settings.public_key_path})",
    )
    parser.add_argument(
        "--key-size",
        "-s",
        type=int,
        default=2048,
        choices=[2048, 4096],
        help="RSA key size in bits (default: 2048)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing private key",
    )

    args = parser.parse_args()

    private_key_path = Path(args.private_key)
    if private_key_path.exists() and not args.force:
        parser.error(f"{private_key_path} already exists (use --force to replace it)")

    generate_rsa_keys(private_key_path, Path(args.public_key), key_size=args.key_size)


if __name__ == "__main__":
    main()
