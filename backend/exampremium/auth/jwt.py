"""JWT access token decoding.

Tokens are issued by the platform's auth service with the shared secret; this
service only needs to decode them.
"""

from jose import jwt

from exampremium.config import settings


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
