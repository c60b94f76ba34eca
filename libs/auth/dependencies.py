from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import Principal, Role
from libs.common.config import get_settings

settings = get_settings()
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    token: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """
    Validate the bearer JWT and return the calling principal.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if token is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        principal = Principal(**payload)
    except (JWTError, ValidationError):
        raise credentials_exception

    # Lets the rate limiter key on the caller instead of the IP.
    request.state.principal = principal
    return principal


async def require_admin(
    current_user: Annotated[Principal, Depends(get_current_user)]
) -> Principal:
    """
    Ensure the caller administers the gym (admin or owner).
    """
    if not current_user.is_staff_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def require_member(
    current_user: Annotated[Principal, Depends(get_current_user)]
) -> Principal:
    if current_user.role != Role.MEMBER:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return current_user
