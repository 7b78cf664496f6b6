from typing import List, Optional
from sqlalchemy import func, or_, select
from vexa.schema.full_schema import Coupon, Orders


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def find_coupon_by_code(session, code: str, lock: bool = False) -> Optional[Coupon]:
    stmt = select(Coupon).where(Coupon.code == normalize_code(code)).limit(1)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def count_coupon_usage(session, coupon_id: int) -> int:
    res = await session.execute(select(func.count(Orders.id)).where(Orders.coupon_id == coupon_id))
    return int(res.scalar_one())


async def active_coupons(session, at) -> List[Coupon]:
    stmt = (
        select(Coupon)
        .where(Coupon.is_active.is_(True), or_(Coupon.expires_at.is_(None), Coupon.expires_at > at))
        .order_by(Coupon.created_at.desc(), Coupon.id.desc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())
