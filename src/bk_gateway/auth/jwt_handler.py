"""JWT access-token verification.

Tokens are issued by the external auth service (HS256, shared JWT_SECRET).
This service only verifies them and trusts the ``sub`` claim as the user id.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.bk_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def decode_access_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Returns:
        Decoded payload dict with at minimum {"sub": ..., "type": "access"}.

    Raises:
        InvalidCredentialsError: signature invalid, token expired, wrong
            token type or missing subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload
