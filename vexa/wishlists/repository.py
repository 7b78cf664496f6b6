from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from vexa.cart.owner import CartOwner, owner_clause, owner_values
from vexa.cart.repository import variant_key
from vexa.common.utils import now
from vexa.products.pricing import resolve_unit_price
from vexa.products.repository import load_catalog_rows
from vexa.schema.full_schema import Wishlist, WishlistItem


async def find_wishlist(session, owner: CartOwner, lock: bool = False) -> Optional[Wishlist]:
    stmt = select(Wishlist).where(owner_clause(Wishlist, owner)).limit(1)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_or_create_wishlist(session, owner: CartOwner, lock: bool = False) -> Wishlist:
    wishlist = await find_wishlist(session, owner, lock=lock)
    if wishlist is not None:
        return wishlist

    wishlist = Wishlist(**owner_values(owner))
    session.add(wishlist)
    try:
        await session.flush()
        return wishlist
    except IntegrityError:
        await session.rollback()
        return await find_wishlist(session, owner, lock=lock)


async def get_wishlist_items(session, wishlist_id: int) -> List[WishlistItem]:
    stmt = (
        select(WishlistItem)
        .where(WishlistItem.wishlist_id == wishlist_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def find_wishlist_item(session, wishlist_id: int, product_id: int, variant_id: Optional[int]) -> Optional[WishlistItem]:
    stmt = select(WishlistItem).where(
        WishlistItem.wishlist_id == wishlist_id,
        WishlistItem.product_id == product_id,
        WishlistItem.variant_key == variant_key(variant_id),
    ).limit(1)
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def insert_wishlist_item(session, wishlist_id: int, product_id: int, variant_id: Optional[int]) -> WishlistItem:
    item = WishlistItem(wishlist_id=wishlist_id, product_id=product_id,
                        variant_id=variant_id, variant_key=variant_key(variant_id))
    session.add(item)
    await session.flush()
    return item


async def delete_all_wishlist_items(session, wishlist_id: int) -> None:
    await session.execute(delete(WishlistItem).where(WishlistItem.wishlist_id == wishlist_id))


async def build_wishlist_view(session, wishlist: Wishlist) -> Dict[str, Any]:
    items = await get_wishlist_items(session, wishlist.id)
    products, variants = await load_catalog_rows(
        session,
        (it.product_id for it in items),
        (it.variant_id for it in items if it.variant_id is not None),
    )

    at = now()
    lines = []
    for it in items:
        product = products.get(it.product_id)
        variant = variants.get(it.variant_id) if it.variant_id is not None else None
        lines.append({
            "id": it.id,
            "product_id": it.product_id,
            "variant_id": it.variant_id,
            "name": product.name if product is not None else None,
            "image": product.images[0] if product is not None and product.images else None,
            "variant_options": variant.options if variant is not None else None,
            "unit_price": resolve_unit_price(product, variant, at) if product is not None else None,
            "in_stock": (variant.stock if variant is not None else product.stock) > 0 if product is not None else False,
        })

    return {
        "wishlist_id": wishlist.id,
        "user_id": wishlist.user_id,
        "session_id": wishlist.session_id,
        "items": lines,
    }
