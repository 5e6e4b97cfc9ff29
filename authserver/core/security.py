"""RSA signing key management"""

import base64
import hashlib
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from authserver.core.config import logger, settings


class RSAKeyManager:
    """
    Process-wide RSA key pair used to sign and verify tokens.

    Keys are loaded (or generated) once at startup and only read afterwards,
    so concurrent requests share them without locking.
    """

    def __init__(self):
        self._private_key = None
        self._public_key = None
        self._private_pem: str | None = None
        self._public_pem: str | None = None
        self._kid: str | None = None

    def load_keys(self) -> None:
        """Load RSA keys from the configured PEM files, generating them if absent"""
        private_key_path = Path(settings.private_key_path)
        public_key_path = Path(settings.public_key_path)

        if not private_key_path.exists():
            logger.warning(f"Private key not found at {private_key_path}")
            logger.info("Generating new RSA key pair...")
            self.generate_keys()
            return

        try:
            with open(private_key_path, "rb") as f:
                private_key = serialization.load_pem_private_key(f.read(), password=None)

            if public_key_path.exists():
                with open(public_key_path, "rb") as f:
                    public_key = serialization.load_pem_public_key(f.read())
            else:
                public_key = private_key.public_key()

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load RSA keys: {e}")
            raise

        self._set_keys(private_key, public_key)
        logger.info(f"RSA keys loaded successfully (kid={self._kid})")

    def generate_keys(self, key_size: int = 2048, persist: bool = True) -> None:
        """
        Generate a new RSA key pair

        Args:
            key_size: Size of the RSA key in bits
            persist: Write the pair to the configured PEM paths
        """
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        self._set_keys(private_key, private_key.public_key())

        if persist:
            self.save_keys()

        logger.info(f"Generated new RSA key pair ({key_size} bits)")

    def save_keys(self) -> None:
        """Save RSA keys to the configured PEM paths"""
        private_key_path = Path(settings.private_key_path)
        public_key_path = Path(settings.public_key_path)

        try:
            private_key_path.parent.mkdir(parents=True, exist_ok=True)
            public_key_path.parent.mkdir(parents=True, exist_ok=True)

            private_key_path.write_text(self._private_pem)
            public_key_path.write_text(self._public_pem)

            # Set restrictive permissions
            os.chmod(private_key_path, 0o600)
            os.chmod(public_key_path, 0o644)

        except OSError as e:
            logger.error(f"Failed to save RSA keys: {e}")
            raise

        logger.info("RSA keys saved successfully")

    def _set_keys(self, private_key, public_key) -> None:
        self._private_key = private_key
        self._public_key = public_key
        self._private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()
        self._public_pem = public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

        # Key ID: truncated SHA-256 thumbprint of the DER public key
        der = public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        digest = hashlib.sha256(der).digest()
        self._kid = base64.urlsafe_b64encode(digest[:12]).decode().rstrip("=")

    def _ensure_loaded(self) -> None:
        if self._private_key is None:
            self.load_keys()

    @property
    def public_key(self):
        """Get public key"""
        self._ensure_loaded()
        return self._public_key

    @property
    def kid(self) -> str:
        """Get key ID"""
        self._ensure_loaded()
        return self._kid

    def get_public_key_pem(self) -> str:
        """Get public key in PEM format"""
        self._ensure_loaded()
        return self._public_pem

    def get_private_key_pem(self) -> str:
        """Get private key in PEM format"""
        self._ensure_loaded()
        return self._private_pem


# Global instance
rsa_key_manager = RSAKeyManager()
