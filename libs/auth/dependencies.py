import time
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings

security = HTTPBearer()

SERVICE_TOKEN_TTL_SECONDS = 60


def _service_role_jwt(calling_service: str) -> str:
    """Mint a short-lived service-role token for inter-service calls."""
    now = int(time.time())
    payload = {
        "sub": f"service:{calling_service}",
        "role": "service_role",
        "iat": now,
        "exp": now + SERVICE_TOKEN_TTL_SECONDS,
    }
    return jwt.encode(payload, get_settings().SUPABASE_JWT_SECRET, algorithm="HS256")


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Validate Supabase JWT and return the authenticated user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        # Supabase uses HS256; audience varies between token kinds
        payload = jwt.decode(
            token.credentials,
            get_settings().SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
        # Custom claims live in app_metadata on Supabase tokens
        app_metadata = payload.get("app_metadata") or {}
        for claim in ("user_type", "is_admin_agent"):
            if claim not in payload and claim in app_metadata:
                payload[claim] = app_metadata[claim]
        return AuthUser(**payload)

    except (JWTError, ValidationError):
        raise credentials_exception


async def require_booking_agent(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Allow booking agents and admin agents (who are agents without a cap)."""
    if current_user.user_type not in ("booking_agent", "admin_agent"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Booking agent account required",
        )
    return current_user


async def require_admin_agent(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Ensure the caller is a platform operator."""
    if not current_user.is_operator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def require_service_role(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Restrict internal endpoints to service-role tokens."""
    if not current_user.is_service:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service role required",
        )
    return current_user
