"""FastAPI dependency: require_admin.

Usage in an admin router:
    from src.ss_gateway.auth.dependencies import require_admin

    router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.ss_common.errors import AdminRequiredError
from src.ss_gateway.auth.jwt_handler import decode_token

# auto_error=False so a missing header yields our 403 envelope, not a bare 403
bearer_scheme = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Validate the admin Bearer token and return its subject.

    Raises AdminRequiredError (403) when the header is missing and
    InvalidCredentialsError (401) when the token is invalid or expired.
    """
    if credentials is None or not credentials.credentials:
        raise AdminRequiredError()
    payload = decode_token(credentials.credentials)
    return payload.get("sub", "")
