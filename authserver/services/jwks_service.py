"""JWKS (JSON Web Key Set) service"""

import base64

from authserver.core.security import rsa_key_manager


def _int_to_base64url(value: int) -> str:
    """Encode a positive integer as unpadded base64url (RFC 7518)"""
    value_bytes = value.to_bytes((value.bit_length() + 7) // 8, byteorder="big")
    return base64.urlsafe_b64encode(value_bytes).decode("utf-8").rstrip("=")


class JWKSService:
    """Publishes the token verification key"""

    def get_jwks(self) -> dict:
        """
        Build the JWK set for the current signing key

        Resource servers use it to verify access tokens offline.
        """
        public_numbers = rsa_key_manager.public_key.public_numbers()

        return {
            "keys": [
                {
                    "kty": "RSA",
                    "use": "sig",
                    "kid": rsa_key_manager.kid,
                    "alg": "RS256",
                    "n": _int_to_base64url(public_numbers.n),
                    "e": _int_to_base64url(public_numbers.e),
                }
            ]
        }


# Global instance
jwks_service = JWKSService()
