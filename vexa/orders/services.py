from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import select
from vexa.cart import repository as cart_repo
from vexa.cart.owner import UserOwner
from vexa.common.custom_exceptions import (EmptyCartError, InvalidStateError, NotFoundError,
                                           PriceUnavailableError, UnauthorizedError)
from vexa.common.utils import now, to_money
from vexa.config.settings import config_settings
from vexa.coupons.services import calculate_discount, validate_coupon
from vexa.db.utils import atomic
from vexa.inventory import ledger
from vexa.orders import repository as order_repo
from vexa.orders.constants import logger
from vexa.orders.lifecycle import ensure_transition
from vexa.orders.models import CreateOrderInput, OrderItemSnapshot, VariantSnapshot
from vexa.orders.utils import compute_shipping_cost, generate_order_number
from vexa.products.pricing import resolve_unit_price
from vexa.products.repository import load_catalog_rows
from vexa.schema.full_schema import OrderItem, Orders, OrderStatus, Payment, PaymentStatus, Product, ProductVariant


async def create_order(session, user_id: int, payload: CreateOrderInput) -> Dict[str, Any]:
    """Turn the user's cart into a PENDING order, all or nothing.

    Stock was taken when items went into the cart, so the cart is emptied without
    giving anything back to the ledger.
    """
    async with atomic(session):
        # 1. cart
        cart = await cart_repo.find_cart(session, UserOwner(user_id), lock=True)
        cart_items = await cart_repo.get_cart_items(session, cart.id, lock=True) if cart is not None else []
        if not cart_items:
            raise EmptyCartError()
        cart_items = sorted(cart_items, key=lambda it: it.id)

        # 2. address
        address = await order_repo.resolve_address(session, user_id, payload.address)

        # 3. price + snapshot every line
        products, variants = await load_catalog_rows(
            session,
            (it.product_id for it in cart_items),
            (it.variant_id for it in cart_items if it.variant_id is not None),
        )
        at = now()
        lines = []
        subtotal = to_money(0)
        for it in cart_items:
            product = products.get(it.product_id)
            if product is None:
                raise NotFoundError("Product not found", {"product_id": it.product_id})
            variant = variants.get(it.variant_id) if it.variant_id is not None else None

            unit_price = resolve_unit_price(product, variant, at)
            if unit_price is None:
                logger.warning("checkout.price_unavailable", extra={"product_id": product.id, "variant_id": it.variant_id})
                raise PriceUnavailableError(f"Price not found for product {product.name}",
                                            {"product_id": product.id, "variant_id": it.variant_id})

            snapshot = OrderItemSnapshot(
                name=product.name,
                sku=product.sku,
                quantity=it.quantity,
                price=unit_price,
                image=product.images[0] if product.images else None,
                variant=VariantSnapshot(sku=variant.sku, options=variant.options) if variant is not None else None,
            )
            lines.append((it, unit_price, snapshot))
            # 4. subtotal
            subtotal += to_money(unit_price * it.quantity)

        # 5. shipping
        shipping_cost = compute_shipping_cost(payload.shipping_option, subtotal)

        # 6. coupon, row locked so the usage count cannot race another checkout
        coupon = None
        discount_amount = to_money(0)
        if payload.coupon:
            coupon = await validate_coupon(session, payload.coupon, lock=True)
            discount_amount = calculate_discount(coupon, subtotal).discount_amount

        # 7. total
        total_amount = to_money(subtotal + shipping_cost - discount_amount)

        # 8. order, items, payment
        order = Orders(
            order_number=generate_order_number(),
            user_id=user_id,
            address_id=address.id,
            coupon_id=coupon.id if coupon is not None else None,
            status=OrderStatus.PENDING.value,
            currency=config_settings.DEFAULT_CURRENCY,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            total_amount=total_amount,
            shipping_address_json=order_repo.address_snapshot(address),
        )
        session.add(order)
        await session.flush()

        order_items = [
            OrderItem(
                order_id=order.id,
                product_id=it.product_id,
                variant_id=it.variant_id,
                quantity=it.quantity,
                unit_price=unit_price,
                data=snapshot.model_dump(mode="json"),
            )
            for it, unit_price, snapshot in lines
        ]
        session.add_all(order_items)

        # an external transaction id means the provider already confirmed the charge
        paid = bool(payload.payment.transaction_id)
        payment = Payment(
            order_id=order.id,
            provider=payload.payment.provider.value,
            amount=total_amount,
            currency=order.currency,
            status=PaymentStatus.COMPLETED.value if paid else PaymentStatus.PENDING.value,
            transaction_id=payload.payment.transaction_id,
            meta=payload.payment.metadata,
            paid_at=at if paid else None,
        )
        session.add(payment)
        await session.flush()

        # 9. empty the cart, stock stays consumed. Lines gone already mean another checkout took them.
        removed = await cart_repo.delete_all_cart_items(session, cart.id)
        if removed != len(cart_items):
            logger.warning("checkout.cart.changed", extra={"user_id": user_id, "cart_id": cart.id,
                                                           "expected": len(cart_items), "removed": removed})
            raise EmptyCartError()
        await cart_repo.touch_cart(session, cart.id)

        logger.info("checkout.order.created", extra={
            "user_id": user_id, "order_id": order.id, "order_number": order.order_number,
            "lines": len(order_items), "subtotal": str(subtotal), "shipping_cost": str(shipping_cost),
            "discount_amount": str(discount_amount), "total_amount": str(total_amount),
            "coupon_id": order.coupon_id, "payment_status": payment.status,
        })
        return await order_repo.serialize_order(session, order, order_items, [payment])


async def _restock(session, order: Orders, items: Sequence[OrderItem]) -> int:
    restocked = 0
    for it in items:
        exists = None
        if it.product_id is not None:
            res = await session.execute(select(Product.id).where(Product.id == it.product_id))
            exists = res.scalar_one_or_none()
        if exists is None:
            logger.warning("order.restock.product_missing", extra={"order_id": order.id, "order_item_id": it.id})
            continue
        if it.variant_id is not None:
            res = await session.execute(
                select(ProductVariant.id).where(ProductVariant.id == it.variant_id,
                                                ProductVariant.product_id == it.product_id))
            if res.scalar_one_or_none() is None:
                logger.warning("order.restock.variant_missing", extra={
                    "order_id": order.id, "order_item_id": it.id, "variant_id": it.variant_id})
                continue
        await ledger.release(session, it.product_id, it.variant_id, it.quantity)
        restocked += it.quantity
    return restocked


async def cancel_order(session, order_id: int, user_id: int) -> Dict[str, Any]:
    async with atomic(session):
        order = await order_repo.get_order_row(session, order_id, lock=True)
        if order.user_id != user_id:
            raise UnauthorizedError("Not authorized to cancel this order")
        if order.status != OrderStatus.PENDING.value:
            raise InvalidStateError("Cannot cancel an order that is not pending", {"status": order.status})

        order.status = OrderStatus.CANCELLED.value
        items = await order_repo.get_order_items(session, order.id)
        restocked = await _restock(session, order, items)
        await session.flush()

        logger.info("order.cancelled", extra={"order_id": order.id, "user_id": user_id, "restocked": restocked})
        return await order_repo.serialize_order(session, order, items)


async def update_order_status(session, order_id: int, new_status) -> Dict[str, Any]:
    """Admin move along the lifecycle. Cancelling gives stock back; refunding does not."""
    new_status = OrderStatus(new_status)
    async with atomic(session):
        order = await order_repo.get_order_row(session, order_id, lock=True)
        previous = order.status
        ensure_transition(previous, new_status)

        order.status = new_status.value
        items = await order_repo.get_order_items(session, order.id)
        payments = await order_repo.get_order_payments(session, order.id, lock=True)

        if new_status == OrderStatus.CANCELLED:
            await _restock(session, order, items)
        elif new_status == OrderStatus.REFUNDED:
            for p in payments:
                if p.status == PaymentStatus.COMPLETED.value:
                    p.status = PaymentStatus.REFUNDED.value
        await session.flush()

        logger.info("order.status.updated", extra={"order_id": order.id, "from": previous, "to": new_status.value})
        return await order_repo.serialize_order(session, order, items, payments)


def _ensure_owner(order: Orders, user_id: Optional[int]) -> None:
    if user_id is not None and order.user_id != user_id:
        raise UnauthorizedError("Not authorized to view this order")


async def get_order(session, order_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
    async with atomic(session):
        order = await order_repo.get_order_row(session, order_id)
        _ensure_owner(order, user_id)
        return await order_repo.serialize_order(session, order)


async def get_order_by_number(session, order_number: str, user_id: Optional[int] = None) -> Dict[str, Any]:
    async with atomic(session):
        order = await order_repo.get_order_row_by_number(session, order_number)
        _ensure_owner(order, user_id)
        return await order_repo.serialize_order(session, order)


async def get_user_orders(session, user_id: int) -> List[Dict[str, Any]]:
    async with atomic(session):
        orders = await order_repo.list_orders(session, user_id)
        return [await order_repo.serialize_order(session, o) for o in orders]


async def get_all_orders(session) -> List[Dict[str, Any]]:
    async with atomic(session):
        orders = await order_repo.list_orders(session)
        return [await order_repo.serialize_order(session, o) for o in orders]
