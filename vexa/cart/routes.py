from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from vexa.auth.dependencies import Principal, get_cart_owner, get_session_id, require_user
from vexa.cart import services as cart_services
from vexa.cart.merge import merge_carts
from vexa.cart.models import CartItemInput, CartItemQuantityInput
from vexa.cart.owner import CartOwner
from vexa.common.custom_exceptions import BadRequestError
from vexa.common.utils import success_response
from vexa.db.dependencies import get_session

carts_router = APIRouter()


@carts_router.get("")
async def read_cart(owner: CartOwner = Depends(get_cart_owner), session: AsyncSession = Depends(get_session)):
    cart = await cart_services.get_cart(session, owner)
    return success_response(cart)


@carts_router.post("/items")
async def add_to_cart(payload: CartItemInput, owner: CartOwner = Depends(get_cart_owner),
                      session: AsyncSession = Depends(get_session)):
    res = await cart_services.add_item(session, owner, payload.product_id, payload.variant_id, payload.quantity)
    status_code = 201 if res["item"]["created"] else 200
    return success_response(res, status_code)


@carts_router.patch("/items")
async def update_cart_item(payload: CartItemQuantityInput, owner: CartOwner = Depends(get_cart_owner),
                           session: AsyncSession = Depends(get_session)):
    res = await cart_services.update_item_quantity(session, owner, payload.product_id, payload.variant_id, payload.quantity)
    return success_response(res)


@carts_router.delete("/items/{product_id}")
async def remove_cart_item(product_id: int, variant_id: Optional[int] = None,
                           owner: CartOwner = Depends(get_cart_owner),
                           session: AsyncSession = Depends(get_session)):
    res = await cart_services.remove_item(session, owner, product_id, variant_id)
    return success_response(res)


@carts_router.delete("")
async def clear_cart(owner: CartOwner = Depends(get_cart_owner), session: AsyncSession = Depends(get_session)):
    res = await cart_services.clear_cart(session, owner)
    return success_response(res)


# called by the client right after login with the guest session header still attached
@carts_router.post("/merge")
async def merge_guest_cart(principal: Principal = Depends(require_user),
                           session_id: Optional[str] = Depends(get_session_id),
                           session: AsyncSession = Depends(get_session)):
    if not session_id:
        raise BadRequestError("Session ID is required to merge a guest cart")
    cart = await merge_carts(session, principal.user_id, session_id)
    return success_response(cart)
