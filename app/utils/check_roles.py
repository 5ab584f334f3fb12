# app/utils/check_roles.py
from fastapi import HTTPException
from typing import Callable
from functools import wraps

# Higher number = more discount authority
ROLE_AUTHORITY = {
    "sales": 10,
    "manager": 20,
    "admin": 30,
    "owner": 40,
}


def role_authority(role: str | None) -> int:
    if not role:
        return 0
    return ROLE_AUTHORITY.get(role.lower(), 0)


def has_authority(role: str | None, minimum_role: str) -> bool:
    return role_authority(role) >= role_authority(minimum_role)


def require_role(roles: list[str]):
    """Decorator to validate user role; expects user to be passed by route."""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, _user, **kwargs):
            if _user is None:
                raise HTTPException(status_code=401, detail="User not authenticated")
            if _user.role.lower() not in [r.lower() for r in roles]:
                raise HTTPException(status_code=403, detail="Permission denied")
            return await func(*args, _user=_user, **kwargs)
        return wrapper
    return decorator


# Common role sets for route guards
ALL_ROLES = list(ROLE_AUTHORITY)
MANAGER_ROLES = ["manager", "admin", "owner"]
ADMIN_ROLES = ["admin", "owner"]
