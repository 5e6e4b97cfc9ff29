"""Token service for signed JWT operations"""

import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from authserver.core.config import logger
from authserver.core.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError
from authserver.core.security import rsa_key_manager
from authserver.schemas.token import JWTPayload


class TokenService:
    """
    Service for creating, decoding and verifying RS256 signed tokens.

    decode_token never checks the signature and is only used to derive the
    store lookup key. Every trust decision goes through verify_token.
    """

    def __init__(self):
        self.algorithm = "RS256"

    def create_token(self, subject: str, expires_in: int) -> str:
        """
        Create a signed token

        Args:
            subject: User id, or client id for machine tokens
            expires_in: Token lifetime in seconds

        Returns:
            Compact signed token string
        """
        now = datetime.now(timezone.utc)
        payload = JWTPayload(
            jti=str(uuid.uuid4()),
            sub=subject,
            iat=int(now.timestamp()),
            exp=int((now + timedelta(seconds=expires_in)).timestamp()),
        )

        token = jwt.encode(
            payload.model_dump(),
            rsa_key_manager.get_private_key_pem(),
            algorithm=self.algorithm,
            headers={"kid": rsa_key_manager.kid},
        )

        logger.debug(
            f"[TRACE] Token created: jti={payload.jti}",
            extra={"trace_point": "token_created", "jti": payload.jti, "expires_in": expires_in},
        )

        return token

    def decode_token(self, token: str) -> JWTPayload:
        """
        Read token claims WITHOUT verifying the signature

        Args:
            token: Signed token string

        Returns:
            Token claims

        Raises:
            MalformedTokenError: If the token cannot be parsed
        """
        try:
            claims = jwt.get_unverified_claims(token)
            return JWTPayload(**claims)
        except (JWTError, TypeError, ValueError) as e:
            raise MalformedTokenError("Token could not be parsed") from e

    def verify_token(self, token: str) -> JWTPayload:
        """
        Verify token signature and expiry against the server public key

        Args:
            token: Signed token string

        Returns:
            Verified token claims

        Raises:
            ExpiredTokenError: If the token is expired
            InvalidSignatureError: If the signature or structure is invalid
        """
        try:
            claims = jwt.decode(
                token,
                rsa_key_manager.get_public_key_pem(),
                algorithms=[self.algorithm],
            )
        except ExpiredSignatureError as e:
            logger.warning(
                "[TRACE] Token verification failed: expired",
                extra={"trace_point": "token_expired"},
            )
            raise ExpiredTokenError("Token has expired") from e
        except JWTError as e:
            logger.warning(
                f"[TRACE] Token verification failed: {type(e).__name__}",
                extra={"trace_point": "token_invalid", "error_type": type(e).__name__},
            )
            raise InvalidSignatureError("Token signature is invalid") from e

        try:
            return JWTPayload(**claims)
        except (TypeError, ValueError) as e:
            raise InvalidSignatureError("Token claims are incomplete") from e


# Global instance
token_service = TokenService()
