"""Admin service token creation and verification.

MVP NOTE: HS256 (symmetric HMAC) with one shared JWT_SECRET. The dashboard
and the API both hold the secret. Tokens carry no jti and cannot be revoked
before they expire; keep ADMIN_TOKEN_EXPIRE_MINUTES short.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.ss_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_ADMIN_EXPIRE = timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES)

ADMIN_TOKEN_TYPE = "admin"


def create_admin_token(subject: str) -> str:
    """Issue a short-lived admin token for a service or operator name."""
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "type": ADMIN_TOKEN_TYPE,
        "iat": now,
        "exp": now + _ADMIN_EXPIRE,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_token(token: str, expected_type: str = ADMIN_TOKEN_TYPE) -> dict[str, str]:
    """Decode and validate a token.

    Raises:
        InvalidCredentialsError: signature invalid, expired, or wrong `type`.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != expected_type:
        raise InvalidCredentialsError()
    return payload
