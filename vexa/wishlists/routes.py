from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from vexa.auth.dependencies import Principal, get_cart_owner, get_session_id, require_user
from vexa.cart.owner import CartOwner
from vexa.common.custom_exceptions import BadRequestError
from vexa.common.utils import success_response
from vexa.db.dependencies import get_session
from vexa.wishlists import services as wishlist_services
from vexa.wishlists.models import WishlistItemInput

wishlists_router = APIRouter()


@wishlists_router.get("")
async def read_wishlist(owner: CartOwner = Depends(get_cart_owner), session: AsyncSession = Depends(get_session)):
    res = await wishlist_services.get_wishlist(session, owner)
    return success_response(res)


@wishlists_router.post("/items")
async def add_to_wishlist(payload: WishlistItemInput, owner: CartOwner = Depends(get_cart_owner),
                          session: AsyncSession = Depends(get_session)):
    res = await wishlist_services.add_to_wishlist(session, owner, payload.product_id, payload.variant_id)
    return success_response(res)


@wishlists_router.delete("/items/{product_id}")
async def remove_wishlist_item(product_id: int, variant_id: Optional[int] = None,
                               owner: CartOwner = Depends(get_cart_owner),
                               session: AsyncSession = Depends(get_session)):
    res = await wishlist_services.remove_wishlist_item(session, owner, product_id, variant_id)
    return success_response(res)


@wishlists_router.delete("")
async def clear_wishlist(owner: CartOwner = Depends(get_cart_owner), session: AsyncSession = Depends(get_session)):
    res = await wishlist_services.clear_wishlist(session, owner)
    return success_response(res)


@wishlists_router.post("/merge")
async def merge_guest_wishlist(principal: Principal = Depends(require_user),
                               session_id: Optional[str] = Depends(get_session_id),
                               session: AsyncSession = Depends(get_session)):
    if not session_id:
        raise BadRequestError("Session ID is required to merge a guest wishlist")
    res = await wishlist_services.merge_wishlists(session, principal.user_id, session_id)
    return success_response(res)
