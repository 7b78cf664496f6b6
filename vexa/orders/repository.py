from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import select
from vexa.common.custom_exceptions import BadRequestError, NotFoundError
from vexa.common.utils import as_utc, to_money
from vexa.orders.constants import logger
from vexa.orders.models import AddressInput
from vexa.schema.full_schema import Address, Coupon, OrderItem, Orders, Payment


async def resolve_address(session, user_id: int, address_in: AddressInput) -> Address:
    """Existing address id: must be the user's, updated in place when the input differs.
    No id: a new address, made default if the user has none yet."""
    fields = address_in.address_fields()

    if address_in.id is not None:
        res = await session.execute(select(Address).where(Address.id == address_in.id).with_for_update())
        addr = res.scalar_one_or_none()
        if addr is None:
            raise NotFoundError("Address not found")
        if addr.user_id != user_id:
            raise BadRequestError("Address does not belong to user")

        changed = {k: v for k, v in fields.items() if getattr(addr, k) != v}
        if changed:
            for k, v in changed.items():
                setattr(addr, k, v)
            await session.flush()
            logger.info("checkout.address.updated", extra={"user_id": user_id, "address_id": addr.id,
                                                           "fields": sorted(changed)})
        return addr

    res = await session.execute(
        select(Address.id).where(Address.user_id == user_id, Address.is_default.is_(True)).limit(1)
    )
    has_default = res.scalar_one_or_none() is not None

    addr = Address(user_id=user_id, is_default=not has_default, **fields)
    session.add(addr)
    await session.flush()
    logger.info("checkout.address.created", extra={"user_id": user_id, "address_id": addr.id,
                                                   "is_default": addr.is_default})
    return addr


def address_snapshot(addr: Address) -> Dict[str, Any]:
    return {
        "id": addr.id,
        "name": addr.name,
        "email": addr.email,
        "street": addr.street,
        "city": addr.city,
        "postal_code": addr.postal_code,
        "country": addr.country,
        "phone": addr.phone,
    }


async def get_order_row(session, order_id: int, lock: bool = False) -> Orders:
    stmt = select(Orders).where(Orders.id == order_id)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    order = res.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_order_row_by_number(session, order_number: str) -> Orders:
    res = await session.execute(select(Orders).where(Orders.order_number == order_number))
    order = res.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_order_items(session, order_id: int) -> List[OrderItem]:
    res = await session.execute(select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id))
    return list(res.scalars().all())


async def get_order_payments(session, order_id: int, lock: bool = False) -> List[Payment]:
    stmt = select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at, Payment.id)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_orders(session, user_id: Optional[int] = None) -> List[Orders]:
    stmt = select(Orders).order_by(Orders.created_at.desc(), Orders.id.desc())
    if user_id is not None:
        stmt = stmt.where(Orders.user_id == user_id)
    res = await session.execute(stmt)
    return list(res.scalars().all())


def serialize_payment(p: Payment) -> Dict[str, Any]:
    return {
        "id": p.id,
        "public_id": str(p.public_id),
        "provider": p.provider,
        "amount": to_money(p.amount),
        "currency": p.currency,
        "status": p.status,
        "transaction_id": p.transaction_id,
        "paid_at": as_utc(p.paid_at),
        "created_at": as_utc(p.created_at),
    }


def serialize_order_item(it: OrderItem) -> Dict[str, Any]:
    return {
        "id": it.id,
        "product_id": it.product_id,
        "variant_id": it.variant_id,
        "quantity": it.quantity,
        "unit_price": to_money(it.unit_price),
        "data": it.data,
    }


async def serialize_order(session, order: Orders, items: Optional[Sequence[OrderItem]] = None,
                          payments: Optional[Sequence[Payment]] = None) -> Dict[str, Any]:
    if items is None:
        items = await get_order_items(session, order.id)
    if payments is None:
        payments = await get_order_payments(session, order.id)
    coupon = await session.get(Coupon, order.coupon_id) if order.coupon_id is not None else None

    return {
        "id": order.id,
        "public_id": str(order.public_id),
        "order_number": order.order_number,
        "user_id": order.user_id,
        "status": order.status,
        "currency": order.currency,
        "subtotal": to_money(order.subtotal),
        "shipping_cost": to_money(order.shipping_cost),
        "discount_amount": to_money(order.discount_amount),
        "total_amount": to_money(order.total_amount),
        "address_id": order.address_id,
        "shipping_address": order.shipping_address_json,
        "coupon": {"id": coupon.id, "code": coupon.code, "type": coupon.type, "value": to_money(coupon.value)}
        if coupon is not None else None,
        "items": [serialize_order_item(it) for it in items],
        "payments": [serialize_payment(p) for p in payments],
        "created_at": as_utc(order.created_at),
        "updated_at": as_utc(order.updated_at),
    }
