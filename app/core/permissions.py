"""Role-based access control dependencies."""

from enum import Enum
from typing import Any, Callable

from fastapi import Depends

from app.api.deps import get_current_user
from app.core.exceptions import AuthorizationError
from app.models.user import User


class UserRole(str, Enum):
    """Account roles in the system."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


def require_role(*allowed_roles: UserRole) -> Callable[..., Any]:
    """Dependency to require specific account roles."""

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in {role.value for role in allowed_roles}:
            raise AuthorizationError(
                f"Role '{current_user.role}' is not authorized for this action"
            )
        return current_user

    return role_checker


# Convenience dependencies
require_admin = require_role(UserRole.ADMIN)
require_customer = require_role(UserRole.CUSTOMER)
require_provider = require_role(UserRole.PROVIDER)
