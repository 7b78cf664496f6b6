from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value
from vexa.cart.owner import CartOwner, owner_clause, owner_values
from vexa.common.custom_exceptions import ConcurrentUpdateError
from vexa.common.utils import now, to_money
from vexa.products.pricing import resolve_unit_price
from vexa.products.repository import load_catalog_rows
from vexa.schema.full_schema import Cart, CartItem


def variant_key(variant_id: Optional[int]) -> int:
    return variant_id or 0


async def find_cart(session, owner: CartOwner, lock: bool = False) -> Optional[Cart]:
    stmt = select(Cart).where(owner_clause(Cart, owner)).limit(1)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_or_create_cart(session, owner: CartOwner, lock: bool = False) -> Cart:
    """Must run before any other write of the transaction: a lost insert race rolls the transaction back."""
    cart = await find_cart(session, owner, lock=lock)
    if cart is not None:
        return cart

    cart = Cart(**owner_values(owner))
    session.add(cart)
    try:
        await session.flush()
        return cart
    except IntegrityError:
        # concurrent request created the same owner's cart first
        await session.rollback()
        return await find_cart(session, owner, lock=lock)


async def touch_cart(session, cart_id: int) -> None:
    await session.execute(update(Cart).where(Cart.id == cart_id).values(updated_at=now()))


async def get_cart_items(session, cart_id: int, lock: bool = False) -> List[CartItem]:
    stmt = select(CartItem).where(CartItem.cart_id == cart_id).order_by(CartItem.created_at.desc(), CartItem.id.desc())
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def find_cart_item(session, cart_id: int, product_id: int, variant_id: Optional[int]) -> Optional[CartItem]:
    stmt = (
        select(CartItem)
        .where(CartItem.cart_id == cart_id,
               CartItem.product_id == product_id,
               CartItem.variant_key == variant_key(variant_id))
        .with_for_update()
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def insert_cart_item(session, cart_id: int, product_id: int, variant_id: Optional[int], quantity: int) -> CartItem:
    item = CartItem(
        cart_id=cart_id,
        product_id=product_id,
        variant_id=variant_id,
        variant_key=variant_key(variant_id),
        quantity=quantity,
    )
    session.add(item)
    await session.flush()
    return item


async def set_item_quantity(session, item: CartItem, quantity: int) -> None:
    """Move the line from the quantity this transaction read to `quantity`, or fail if it changed meanwhile."""
    await session.flush()
    res = await session.execute(
        update(CartItem)
        .where(CartItem.id == item.id, CartItem.quantity == item.quantity)
        .values(quantity=quantity)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdateError("Cart item changed concurrently", {"cart_item_id": item.id})
    set_committed_value(item, "quantity", quantity)


async def delete_cart_item(session, item: CartItem) -> None:
    await session.flush()
    res = await session.execute(
        delete(CartItem)
        .where(CartItem.id == item.id, CartItem.quantity == item.quantity)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdateError("Cart item changed concurrently", {"cart_item_id": item.id})
    session.expunge(item)


async def delete_all_cart_items(session, cart_id: int) -> int:
    res = await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
    return res.rowcount


async def build_cart_view(session, cart: Cart) -> Dict[str, Any]:
    """Cart as the API sees it: prices are resolved now, never read from the cart rows."""
    items = await get_cart_items(session, cart.id)
    products, variants = await load_catalog_rows(
        session,
        (it.product_id for it in items),
        (it.variant_id for it in items if it.variant_id is not None),
    )

    lines = []
    subtotal = to_money(0)
    at = now()
    for it in items:
        product = products.get(it.product_id)
        variant = variants.get(it.variant_id) if it.variant_id is not None else None
        unit_price = resolve_unit_price(product, variant, at) if product is not None else None
        line_total = to_money(unit_price * it.quantity) if unit_price is not None else None
        if line_total is not None:
            subtotal += line_total
        lines.append({
            "id": it.id,
            "product_id": it.product_id,
            "variant_id": it.variant_id,
            "quantity": it.quantity,
            "name": product.name if product is not None else None,
            "sku": (variant.sku if variant is not None and variant.sku else product.sku) if product is not None else None,
            "image": product.images[0] if product is not None and product.images else None,
            "variant_options": variant.options if variant is not None else None,
            "unit_price": unit_price,
            "line_total": line_total,
        })

    return {
        "cart_id": cart.id,
        "user_id": cart.user_id,
        "session_id": cart.session_id,
        "items": lines,
        "item_count": sum(it.quantity for it in items),
        "subtotal": subtotal,
    }
