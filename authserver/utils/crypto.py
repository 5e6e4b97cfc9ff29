"""Cryptography utilities"""

import secrets
import string

from passlib.context import CryptContext

from authserver.core.config import settings

# Password and client secret hashing context with bcrypt
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

_UID_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    """
    Hash a password or client secret using bcrypt

    Args:
        password: Plain text secret

    Returns:
        Hashed secret
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a secret against a hash (constant-time comparison)

    Args:
        plain_password: Plain text secret to verify
        hashed_password: Hash to compare against

    Returns:
        True if the secret matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def generate_uid(length: int) -> str:
    """
    Generate an unguessable alphanumeric identifier

    Used for authorization codes and decision transaction ids.
    """
    return "".join(secrets.choice(_UID_ALPHABET) for _ in range(length))


def generate_secret(length: int = 32) -> str:
    """Generate a random hex secret of `length` bytes"""
    return secrets.token_hex(length)
