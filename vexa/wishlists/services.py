from typing import Any, Dict, Optional
from vexa.cart.owner import CartOwner, GuestOwner, UserOwner, owner_log_fields
from vexa.db.utils import atomic
from vexa.products.repository import ensure_purchasable
from vexa.schema.full_schema import Wishlist
from vexa.wishlists import repository as wishlist_repo
from vexa.wishlists.constants import logger

# Same identity rules as the cart, but nothing here touches stock.


async def get_wishlist(session, owner: CartOwner) -> Dict[str, Any]:
    async with atomic(session):
        wishlist = await wishlist_repo.get_or_create_wishlist(session, owner)
        return await wishlist_repo.build_wishlist_view(session, wishlist)


async def add_to_wishlist(session, owner: CartOwner, product_id: int, variant_id: Optional[int]) -> Dict[str, Any]:
    async with atomic(session):
        wishlist = await wishlist_repo.get_or_create_wishlist(session, owner, lock=True)
        await ensure_purchasable(session, product_id, variant_id)

        item = await wishlist_repo.find_wishlist_item(session, wishlist.id, product_id, variant_id)
        if item is None:
            await wishlist_repo.insert_wishlist_item(session, wishlist.id, product_id, variant_id)
            logger.info("wishlist.item.added", extra={
                **owner_log_fields(owner), "wishlist_id": wishlist.id,
                "product_id": product_id, "variant_id": variant_id,
            })
        return await wishlist_repo.build_wishlist_view(session, wishlist)


async def remove_wishlist_item(session, owner: CartOwner, product_id: int, variant_id: Optional[int]) -> Dict[str, Any]:
    async with atomic(session):
        wishlist = await wishlist_repo.get_or_create_wishlist(session, owner, lock=True)
        item = await wishlist_repo.find_wishlist_item(session, wishlist.id, product_id, variant_id)
        if item is not None:
            await session.delete(item)
            await session.flush()
            logger.info("wishlist.item.removed", extra={
                **owner_log_fields(owner), "wishlist_id": wishlist.id,
                "product_id": product_id, "variant_id": variant_id,
            })
        return await wishlist_repo.build_wishlist_view(session, wishlist)


async def clear_wishlist(session, owner: CartOwner) -> Dict[str, Any]:
    async with atomic(session):
        wishlist = await wishlist_repo.get_or_create_wishlist(session, owner, lock=True)
        await wishlist_repo.delete_all_wishlist_items(session, wishlist.id)
        logger.info("wishlist.cleared", extra={**owner_log_fields(owner), "wishlist_id": wishlist.id})
        return await wishlist_repo.build_wishlist_view(session, wishlist)


async def merge_wishlists(session, user_id: int, session_id: str) -> Dict[str, Any]:
    """Union the guest wishlist into the user's; the guest row goes away. Idempotent."""
    async with atomic(session):
        user_list = await wishlist_repo.find_wishlist(session, UserOwner(user_id), lock=True)
        guest_list = await wishlist_repo.find_wishlist(session, GuestOwner(session_id), lock=True)

        if guest_list is not None and guest_list.user_id is not None and guest_list.user_id != user_id:
            guest_list.session_id = None
            await session.flush()
            guest_list = None

        if user_list is not None and guest_list is not None and user_list.id == guest_list.id:
            wishlist = user_list
        elif user_list is None and guest_list is None:
            wishlist = Wishlist(user_id=user_id, session_id=session_id)
            session.add(wishlist)
            await session.flush()
        elif user_list is None:
            guest_list.user_id = user_id
            await session.flush()
            wishlist = guest_list
        elif guest_list is None:
            if user_list.session_id != session_id:
                user_list.session_id = session_id
                await session.flush()
            wishlist = user_list
        else:
            owned = {(it.product_id, it.variant_key) for it in await wishlist_repo.get_wishlist_items(session, user_list.id)}
            for it in await wishlist_repo.get_wishlist_items(session, guest_list.id):
                if (it.product_id, it.variant_key) in owned:
                    await session.delete(it)
                else:
                    it.wishlist_id = user_list.id
            await session.flush()
            await session.delete(guest_list)
            await session.flush()
            user_list.session_id = session_id
            await session.flush()
            wishlist = user_list

        logger.info("wishlist.merged", extra={"user_id": user_id, "wishlist_id": wishlist.id})
        return await wishlist_repo.build_wishlist_view(session, wishlist)
