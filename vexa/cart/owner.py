from dataclasses import dataclass
from typing import Optional, Union
from vexa.common.custom_exceptions import BadRequestError


@dataclass(frozen=True)
class UserOwner:
    user_id: int


@dataclass(frozen=True)
class GuestOwner:
    session_id: str


CartOwner = Union[UserOwner, GuestOwner]


def owner_from(user_id: Optional[int], session_id: Optional[str]) -> CartOwner:
    # an authenticated user always owns the cart it acts on, the session only matters for guests
    if user_id is not None:
        return UserOwner(user_id)
    if session_id:
        return GuestOwner(session_id)
    raise BadRequestError("User ID or session ID is required")


def owner_clause(model, owner: CartOwner):
    """WHERE clause selecting the cart/wishlist row bound to `owner` (model has user_id/session_id)."""
    if isinstance(owner, UserOwner):
        return model.user_id == owner.user_id
    return model.session_id == owner.session_id


def owner_values(owner: CartOwner) -> dict:
    if isinstance(owner, UserOwner):
        return {"user_id": owner.user_id}
    return {"session_id": owner.session_id}


def owner_log_fields(owner: CartOwner) -> dict:
    if isinstance(owner, UserOwner):
        return {"owner": "user", "user_id": owner.user_id}
    return {"owner": "guest"}
