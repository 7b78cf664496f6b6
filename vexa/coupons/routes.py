from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from vexa.auth.dependencies import require_admin
from vexa.common.utils import success_response
from vexa.coupons import services as coupon_services
from vexa.coupons.models import ApplyCouponInput, CouponCodeInput
from vexa.db.dependencies import get_session

coupons_router = APIRouter()
coupons_admin_router = APIRouter(dependencies=[Depends(require_admin)])


@coupons_router.post("/validate")
async def validate_coupon(payload: CouponCodeInput, session: AsyncSession = Depends(get_session)):
    res = await coupon_services.check_coupon(session, payload.code)
    return success_response(res)


@coupons_router.post("/apply")
async def apply_coupon(payload: ApplyCouponInput, session: AsyncSession = Depends(get_session)):
    res = await coupon_services.apply_coupon(session, payload.code, payload.cart_total)
    return success_response(res)


@coupons_admin_router.get("/active")
async def active_coupons(session: AsyncSession = Depends(get_session)):
    res = await coupon_services.list_active_coupons(session)
    return success_response(res)
