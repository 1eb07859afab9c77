"""
Admin authentication dependencies.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from api.dependencies import get_current_user
from infrastructure.config.settings import settings
from infrastructure.database.models.user import User


def is_admin_user(user: User) -> bool:
    """Admin role, or an operator email listed in ADMIN_EMAILS."""
    if user.is_admin:
        return True
    return (user.email or "").lower() in settings.admin_emails_list


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to verify current user is an admin.

    Requires the ADMIN or SUPER_ADMIN role, or an email in ADMIN_EMAILS.

    Raises:
        HTTPException: 403 if user is not an admin
    """
    if not is_admin_user(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required. You do not have permission to access this resource.",
        )

    return current_user
