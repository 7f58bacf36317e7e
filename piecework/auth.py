import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "ADMIN"


@dataclass
class Principal:
    id: int
    username: str
    role: Role
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        logger.warning("Inactive principal %s refused on %s", principal.id, request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep


# Every payroll page is admin-only; there is no per-worker login.
admin_access = require_role(Role.ADMIN)
