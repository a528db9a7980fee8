"""
Role checks for shop users.

Usage:
    @router.put("/catalog/types/{type_key}")
    async def upsert_type(user = Depends(require_role(ROLE_SHOP_ADMIN))):
        ...

SUPER_ADMIN passes every check; the platform operator manages all shops.
"""
import logging

from fastapi import Depends, HTTPException, status

from savtrack.core.security import ROLE_SUPER_ADMIN, get_current_user
from savtrack.models.user import User

logger = logging.getLogger(__name__)


def has_role(user: User, roles: tuple[str, ...]) -> bool:
    return not roles or user.role == ROLE_SUPER_ADMIN or user.role in roles


def require_role(*roles: str):
    """
    Dependency factory that enforces the caller's role is in *roles.
    Accepts any authenticated user when called with no role arguments.
    """

    async def _check_role(current_user: User = Depends(get_current_user)) -> User:
        if not has_role(current_user, roles):
            logger.info(
                "User %s (%s) denied, requires one of %s", current_user.id, current_user.role, roles
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of roles: {list(roles)}",
            )
        return current_user

    return _check_role
