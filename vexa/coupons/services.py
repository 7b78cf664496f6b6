from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List
from vexa.common.custom_exceptions import CouponInvalidError, NotFoundError
from vexa.common.utils import as_utc, now, to_money
from vexa.coupons import repository as coupon_repo
from vexa.coupons.constants import logger
from vexa.db.utils import atomic
from vexa.schema.full_schema import Coupon, CouponType


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: Decimal
    final_total: Decimal


async def validate_coupon(session, code: str, lock: bool = False) -> Coupon:
    """Look a coupon up by code and check it can still be redeemed.

    Runs inside the caller's transaction. Checkout passes lock=True so the usage count
    and the order that consumes the coupon are serialized on the coupon row.
    """
    coupon = await coupon_repo.find_coupon_by_code(session, code, lock=lock)
    if coupon is None:
        logger.info("coupon.not_found", extra={"code": coupon_repo.normalize_code(code)})
        raise NotFoundError("Coupon not found")

    if not coupon.is_active:
        raise CouponInvalidError("This coupon is no longer active", CouponInvalidError.INACTIVE)

    expires_at = as_utc(coupon.expires_at)
    if expires_at is not None and expires_at < now():
        raise CouponInvalidError("This coupon has expired", CouponInvalidError.EXPIRED)

    if coupon.usage_limit is not None:
        used = await coupon_repo.count_coupon_usage(session, coupon.id)
        if used >= coupon.usage_limit:
            logger.info("coupon.limit_reached", extra={"coupon_id": coupon.id, "used": used, "limit": coupon.usage_limit})
            raise CouponInvalidError("This coupon has reached its usage limit", CouponInvalidError.LIMIT_REACHED)

    return coupon


def calculate_discount(coupon: Coupon, subtotal) -> DiscountResult:
    """Discount against the product subtotal only. Shipping is never discounted."""
    subtotal = to_money(subtotal)
    value = Decimal(str(coupon.value))

    if coupon.type == CouponType.PERCENTAGE.value:
        discount = subtotal * value / Decimal(100)
    else:
        discount = value

    discount = to_money(max(Decimal(0), min(discount, subtotal)))
    final_total = to_money(max(Decimal(0), subtotal - discount))
    return DiscountResult(discount_amount=discount, final_total=final_total)


def serialize_coupon(coupon: Coupon) -> Dict[str, Any]:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "type": coupon.type,
        "value": to_money(coupon.value),
        "expires_at": as_utc(coupon.expires_at),
        "usage_limit": coupon.usage_limit,
        "is_active": coupon.is_active,
    }


async def check_coupon(session, code: str) -> Dict[str, Any]:
    async with atomic(session):
        coupon = await validate_coupon(session, code)
        return serialize_coupon(coupon)


async def apply_coupon(session, code: str, cart_total) -> Dict[str, Any]:
    """Preview a coupon against a cart total; nothing is persisted."""
    async with atomic(session):
        coupon = await validate_coupon(session, code)
    result = calculate_discount(coupon, cart_total)
    return {
        **serialize_coupon(coupon),
        "original_total": to_money(cart_total),
        "discount_amount": result.discount_amount,
        "final_total": result.final_total,
    }


async def list_active_coupons(session) -> List[Dict[str, Any]]:
    async with atomic(session):
        coupons = await coupon_repo.active_coupons(session, now())
        return [serialize_coupon(c) for c in coupons]
