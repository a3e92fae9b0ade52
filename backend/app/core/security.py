from collections.abc import Iterable

from fastapi import HTTPException, status

from app.models.enums import RoleName
from app.models.user import User


WRITE_ROLES = (RoleName.admin, RoleName.manager)


def require_roles(user: User, farm_role: RoleName | None, allowed_roles: Iterable[RoleName]) -> None:
    """Global admins pass every check; everyone else needs an allowed farm role."""
    allowed = {role.value for role in set(allowed_roles)}
    if user.role == RoleName.admin:
        return
    if farm_role is not None and RoleName(farm_role).value in allowed:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient role privileges.",
    )
