from datetime import timedelta
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import (
    ROLE_ADMIN,
    ROLE_OPERATOR,
    ROLE_SERVICE,
    AuthUser,
)
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now

settings = get_settings()
security = HTTPBearer()

_ALGORITHM = "HS256"
_SERVICE_TOKEN_TTL = timedelta(minutes=5)


def _service_role_jwt(calling_service: str) -> str:
    """Mint a short-lived service-role token for outbound internal calls."""
    now = utc_now()
    claims = {
        "sub": f"service:{calling_service}",
        "role": ROLE_SERVICE,
        "iat": int(now.timestamp()),
        "exp": int((now + _SERVICE_TOKEN_TTL).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=_ALGORITHM)


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated principal.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],
            options={"verify_aud": False},
        )
        return AuthUser(**payload)
    except (JWTError, ValidationError):
        raise credentials_exception


async def require_admin(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def require_operator(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Admins and fleet operators. Per-asset authority is checked in the service layer."""
    if current_user.role not in (ROLE_ADMIN, ROLE_OPERATOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator privileges required",
        )
    return current_user


async def require_service_role(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Internal service-to-service endpoints only."""
    if current_user.role != ROLE_SERVICE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service role required",
        )
    return current_user


async def require_admin_or_service(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Admins, or collaborator services acting on a user's behalf."""
    if current_user.role not in (ROLE_ADMIN, ROLE_SERVICE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or service role required",
        )
    return current_user
