from typing import Any, Dict, Optional
from vexa.cart import repository as cart_repo
from vexa.cart.constants import logger
from vexa.cart.owner import CartOwner, owner_log_fields
from vexa.common.custom_exceptions import BadRequestError, NotFoundError
from vexa.config.settings import config_settings
from vexa.db.utils import atomic
from vexa.inventory import ledger
from vexa.products.repository import ensure_purchasable
from vexa.schema.full_schema import Cart

# Every mutation: lock the cart row, move stock through the ledger, then write the line.
# A failure anywhere rolls the whole mutation back, stock included.


async def get_or_create_cart(session, owner: CartOwner) -> Cart:
    async with atomic(session):
        return await cart_repo.get_or_create_cart(session, owner)


async def _locked_cart(session, owner: CartOwner) -> Cart:
    return await cart_repo.get_or_create_cart(session, owner, lock=True)


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise BadRequestError("Quantity must be greater than 0")
    if quantity > config_settings.MAX_ITEM_QTY:
        raise BadRequestError(
            "Quantity exceeds the per-item limit",
            {"max_quantity": config_settings.MAX_ITEM_QTY},
        )


async def add_item(session, owner: CartOwner, product_id: int,
                   variant_id: Optional[int], quantity: int) -> Dict[str, Any]:
    """Add `quantity` units of a product/variant. Only the added units are reserved."""
    if quantity <= 0:
        raise BadRequestError("Quantity must be greater than 0")

    async with atomic(session):
        cart = await _locked_cart(session, owner)
        await ensure_purchasable(session, product_id, variant_id)

        item = await cart_repo.find_cart_item(session, cart.id, product_id, variant_id)
        new_quantity = quantity if item is None else item.quantity + quantity
        _check_quantity(new_quantity)

        await ledger.reserve(session, product_id, variant_id, quantity)

        if item is None:
            item = await cart_repo.insert_cart_item(session, cart.id, product_id, variant_id, quantity)
            created = True
        else:
            await cart_repo.set_item_quantity(session, item, new_quantity)
            created = False
        await cart_repo.touch_cart(session, cart.id)

        logger.info("cart.item.added", extra={
            **owner_log_fields(owner), "cart_id": cart.id, "product_id": product_id,
            "variant_id": variant_id, "quantity": quantity, "new_line": created,
        })
        return {
            "cart_id": cart.id,
            "item": {
                "id": item.id,
                "product_id": product_id,
                "variant_id": variant_id,
                "quantity": item.quantity,
                "created": created,
            },
        }


async def update_item_quantity(session, owner: CartOwner, product_id: int,
                               variant_id: Optional[int], new_quantity: int) -> Dict[str, Any]:
    """Set a line to `new_quantity`; reserves or releases only the difference."""
    _check_quantity(new_quantity)

    async with atomic(session):
        cart = await _locked_cart(session, owner)
        item = await cart_repo.find_cart_item(session, cart.id, product_id, variant_id)
        if item is None:
            raise NotFoundError("Cart item not found")

        delta = new_quantity - item.quantity
        if delta > 0:
            await ledger.reserve(session, product_id, variant_id, delta)
        elif delta < 0:
            await ledger.release(session, product_id, variant_id, -delta)

        if delta:
            await cart_repo.set_item_quantity(session, item, new_quantity)
            await cart_repo.touch_cart(session, cart.id)

        logger.info("cart.item.quantity_updated", extra={
            **owner_log_fields(owner), "cart_id": cart.id, "product_id": product_id,
            "variant_id": variant_id, "quantity": new_quantity, "delta": delta,
        })
        return {
            "cart_id": cart.id,
            "item": {"id": item.id, "product_id": product_id, "variant_id": variant_id, "quantity": new_quantity},
        }


async def remove_item(session, owner: CartOwner, product_id: int, variant_id: Optional[int]) -> Dict[str, Any]:
    async with atomic(session):
        cart = await _locked_cart(session, owner)
        item = await cart_repo.find_cart_item(session, cart.id, product_id, variant_id)
        if item is None:
            raise NotFoundError("Cart item not found")

        released = item.quantity
        await ledger.release(session, product_id, variant_id, released)
        await cart_repo.delete_cart_item(session, item)
        await cart_repo.touch_cart(session, cart.id)

        logger.info("cart.item.removed", extra={
            **owner_log_fields(owner), "cart_id": cart.id, "product_id": product_id,
            "variant_id": variant_id, "quantity": released,
        })
        return {"cart_id": cart.id, "product_id": product_id, "variant_id": variant_id, "released": released}


async def clear_cart(session, owner: CartOwner, release_stock: bool = True) -> Dict[str, Any]:
    async with atomic(session):
        cart = await cart_repo.find_cart(session, owner, lock=True)
        if cart is None:
            return {"cart_id": None, "removed": 0}

        items = await cart_repo.get_cart_items(session, cart.id, lock=True)
        if release_stock:
            for it in items:
                await ledger.release(session, it.product_id, it.variant_id, it.quantity)
        await cart_repo.delete_all_cart_items(session, cart.id)
        await cart_repo.touch_cart(session, cart.id)

        logger.info("cart.cleared", extra={
            **owner_log_fields(owner), "cart_id": cart.id,
            "lines": len(items), "released_stock": release_stock,
        })
        return {"cart_id": cart.id, "removed": len(items)}


async def get_cart(session, owner: CartOwner) -> Dict[str, Any]:
    async with atomic(session):
        cart = await cart_repo.get_or_create_cart(session, owner)
        return await cart_repo.build_cart_view(session, cart)
