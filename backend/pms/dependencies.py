"""Request dependencies.

Authentication lives upstream; the gateway forwards the caller's role and id
in headers and the routers only check privilege.
"""

from fastapi import Header, HTTPException

KNOWN_ROLES = ("admin", "manager", "receptionist", "housekeeping", "maintenance", "accountant")


class Caller:
    def __init__(self, role: str, user_id: int | None):
        self.role = role
        self.user_id = user_id


async def get_caller(
    x_user_role: str | None = Header(default=None),
    x_user_id: int | None = Header(default=None),
) -> Caller:
    if not x_user_role:
        raise HTTPException(status_code=401, detail="Missing X-User-Role header")
    role = x_user_role.strip().lower()
    if role not in KNOWN_ROLES:
        raise HTTPException(status_code=403, detail=f"Unknown role '{x_user_role}'")
    return Caller(role, x_user_id)


def require_role(*roles: str):
    """Dependency factory: only callers with one of `roles` get through."""

    async def checker(
        x_user_role: str | None = Header(default=None),
        x_user_id: int | None = Header(default=None),
    ) -> Caller:
        caller = await get_caller(x_user_role, x_user_id)
        if caller.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{caller.role}' is not allowed; requires one of: {', '.join(roles)}",
            )
        return caller

    return checker
