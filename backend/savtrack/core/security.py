"""
JWT verification + current-user / current-shop dependencies.

In development with DEV_SKIP_AUTH=true:
  - Pass X-Dev-User-ID: <auth_user_id> header to authenticate as that user.
  - If the header is absent, the first active shop admin in the DB is used
    (only in development; production always requires a valid token).

In production / staging:
  - Bearer token must be an HS256 token signed with JWT_SECRET by the
    external auth provider, with audience JWT_AUDIENCE. Its `sub` claim is
    the user's auth_user_id; the user's shop is the tenant.
"""
import logging
from contextvars import ContextVar
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.core.config import get_settings
from savtrack.core.db import get_db
from savtrack.models.shop import Shop
from savtrack.models.user import User

logger = logging.getLogger(__name__)
settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_SHOP_ADMIN = "SHOP_ADMIN"
ROLE_TECHNICIAN = "TECHNICIAN"

# Set per request by the dev auth middleware
_dev_auth_user_id: ContextVar[str | None] = ContextVar("_dev_auth_user_id", default=None)


def set_dev_auth_user_id(auth_user_id: str | None) -> None:
    _dev_auth_user_id.set(auth_user_id)


def verify_token(token: str, secret: str, audience: str, algorithm: str = "HS256") -> dict[str, Any]:
    """
    Decode and verify an access token.
    Raises HTTPException(401) on any failure.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm], audience=audience)
    except ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token verification failed") from exc

    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")

    return payload


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency: resolve and return the current authenticated User.
    """
    # ------------------------------------------------------------------ #
    # Development bypass
    # ------------------------------------------------------------------ #
    if settings.auth_disabled:
        auth_user_id = _dev_auth_user_id.get(None)
        if auth_user_id:
            result = await db.execute(select(User).where(User.auth_user_id == auth_user_id))
        else:
            result = await db.execute(
                select(User)
                .where(User.role == ROLE_SHOP_ADMIN, User.is_active.is_(True))
                .order_by(User.created_at)
                .limit(1)
            )
        user = result.scalars().first()
        if user:
            return user
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Dev auth: no matching user found. "
                   "Set X-Dev-User-ID header or create a shop admin first.",
        )

    # ------------------------------------------------------------------ #
    # Bearer token
    # ------------------------------------------------------------------ #
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not settings.auth_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured on this server",
        )

    payload = verify_token(token, settings.jwt_secret, settings.jwt_audience, settings.jwt_algorithm)

    result = await db.execute(select(User).where(User.auth_user_id == payload["sub"]))
    user = result.scalars().first()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return user


async def get_current_shop(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Shop:
    """The tenant of the current user."""
    shop = await db.get(Shop, user.shop_id)
    if shop is None:
        logger.warning("User %s references missing shop %s", user.id, user.shop_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    return shop
