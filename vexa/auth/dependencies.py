from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header, Request
from vexa.cart.owner import CartOwner, owner_from
from vexa.common.constants import SESSION_ID_HEADER
from vexa.common.custom_exceptions import ForbiddenError, UnauthorizedError
from vexa.schema.full_schema import Role


@dataclass(frozen=True)
class Principal:
    """Resolved identity handed over by the authentication collaborator."""
    user_id: int
    role: str = Role.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def get_principal(request: Request) -> Optional[Principal]:
    return getattr(request.state, "principal", None)


def get_session_id(x_session_id: Optional[str] = Header(default=None, alias=SESSION_ID_HEADER)) -> Optional[str]:
    if x_session_id is None:
        return None
    x_session_id = x_session_id.strip()
    return x_session_id or None


def require_user(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    if principal is None:
        raise UnauthorizedError("Authentication required")
    return principal


def require_admin(principal: Principal = Depends(require_user)) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError("Admin role required")
    return principal


def get_cart_owner(principal: Optional[Principal] = Depends(get_principal),
                   session_id: Optional[str] = Depends(get_session_id)) -> CartOwner:
    return owner_from(principal.user_id if principal else None, session_id)
