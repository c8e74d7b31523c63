"""FastAPI dependencies for caller identity.

Authentication happens at the gateway, which forwards the authenticated
user id in ``X-User-ID``. Role checks read the role from the user directory.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from .models import UserProfile, UserRole
from .repository import UserDirectory


async def get_user_directory(request: Request) -> UserDirectory:
    """Get user directory from app state."""
    directory = getattr(request.app.state, "user_directory", None)
    if directory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User directory not available",
        )
    return directory


UserDirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]


async def get_current_user(
    directory: UserDirectoryDep,
    x_user_id: Annotated[UUID | None, Header(alias="X-User-ID")] = None,
) -> UserProfile:
    """Resolve the caller forwarded by the gateway.

    Raises:
        HTTPException(401): Header missing or user unknown/inactive
    """
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Caller identity not provided",
        )
    user = await directory.get_user(x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


def require_role(*allowed_roles: UserRole):
    """Create dependency requiring specific role(s).

    Args:
        *allowed_roles: Roles that are allowed (exact match)

    Returns:
        Dependency function
    """

    async def role_checker(
        user: Annotated[UserProfile, Depends(get_current_user)],
    ) -> UserProfile:
        if user.role not in {role.value for role in allowed_roles}:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return role_checker


AdminUser = Annotated[UserProfile, Depends(require_role(UserRole.ADMIN))]
