"""
Tests for RSA key management and the published JWK set.
"""
import base64

from authserver.core.config import settings
from authserver.core.security import RSAKeyManager, rsa_key_manager
from authserver.services.jwks_service import jwks_service


def _b64url_int(value: str) -> int:
    return int.from_bytes(base64.urlsafe_b64decode(value + "=" * (-len(value) % 4)), "big")


class TestRSAKeyManager:
    """Tests for RSAKeyManager"""

    def test_load_existing_keys(self):
        """Keys written by one manager are read back by another with the same kid"""
        other = RSAKeyManager()
        other.load_keys()

        assert other.kid == rsa_key_manager.kid
        assert other.get_public_key_pem() == rsa_key_manager.get_public_key_pem()

    def test_generate_on_missing_keys(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "private_key_path", str(tmp_path / "k" / "private_key.pem"))
        monkeypatch.setattr(settings, "public_key_path", str(tmp_path / "k" / "public_key.pem"))

        manager = RSAKeyManager()
        manager.load_keys()

        assert (tmp_path / "k" / "private_key.pem").exists()
        assert oct((tmp_path / "k" / "private_key.pem").stat().st_mode)[-3:] == "600"
        assert manager.kid != rsa_key_manager.kid


class TestJWKS:
    """Tests for JWKSService"""

    def test_jwk_matches_public_key(self):
        key = jwks_service.get_jwks()["keys"][0]
        numbers = rsa_key_manager.public_key.public_numbers()

        assert key["kid"] == rsa_key_manager.kid
        assert key["use"] == "sig"
        assert _b64url_int(key["n"]) == numbers.n
        assert _b64url_int(key["e"]) == 65537
