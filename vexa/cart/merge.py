from typing import Any, Dict
from vexa.cart import repository as cart_repo
from vexa.cart.constants import logger
from vexa.cart.owner import GuestOwner, UserOwner
from vexa.db.utils import atomic
from vexa.schema.full_schema import Cart


async def merge_carts(session, user_id: int, session_id: str) -> Dict[str, Any]:
    """Fold the guest cart of `session_id` into the cart of `user_id`, called once at login.

    Merging is additive: both carts already hold their stock, so quantities are summed
    without touching the ledger. Running it again with the same identities changes nothing.
    """
    async with atomic(session):
        user_cart = await cart_repo.find_cart(session, UserOwner(user_id), lock=True)
        guest_cart = await cart_repo.find_cart(session, GuestOwner(session_id), lock=True)

        if guest_cart is not None and guest_cart.user_id is not None and guest_cart.user_id != user_id:
            # session id still points at another account's cart, unbind it instead of absorbing it
            logger.warning("cart.merge.foreign_session", extra={"user_id": user_id, "cart_id": guest_cart.id})
            guest_cart.session_id = None
            await session.flush()
            guest_cart = None

        if user_cart is not None and guest_cart is not None and user_cart.id == guest_cart.id:
            outcome = "noop"
            cart = user_cart

        elif user_cart is None and guest_cart is None:
            cart = Cart(user_id=user_id, session_id=session_id)
            session.add(cart)
            await session.flush()
            outcome = "created"

        elif user_cart is None:
            guest_cart.user_id = user_id
            await session.flush()
            cart = guest_cart
            outcome = "rebound"

        elif guest_cart is None:
            if user_cart.session_id != session_id:
                user_cart.session_id = session_id
                await session.flush()
            cart = user_cart
            outcome = "bound"

        else:
            await _absorb(session, user_cart, guest_cart)
            user_cart.session_id = session_id
            await session.flush()
            cart = user_cart
            outcome = "merged"

        logger.info("cart.merged", extra={"user_id": user_id, "cart_id": cart.id, "outcome": outcome})
        return await cart_repo.build_cart_view(session, cart)


async def _absorb(session, user_cart: Cart, guest_cart: Cart) -> None:
    user_items = await cart_repo.get_cart_items(session, user_cart.id, lock=True)
    guest_items = await cart_repo.get_cart_items(session, guest_cart.id, lock=True)
    by_key = {(it.product_id, it.variant_key): it for it in user_items}

    moved = summed = 0
    for it in guest_items:
        match = by_key.get((it.product_id, it.variant_key))
        if match is not None:
            match.quantity += it.quantity
            await session.delete(it)
            summed += 1
        else:
            it.cart_id = user_cart.id
            moved += 1
    await session.flush()

    # the guest row must be gone before its session id moves onto the user cart
    await session.delete(guest_cart)
    await session.flush()

    logger.debug("cart.merge.absorbed", extra={
        "cart_id": user_cart.id, "guest_cart_id": guest_cart.id, "moved": moved, "summed": summed,
    })
