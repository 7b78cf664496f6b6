from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from vexa.auth.dependencies import Principal, require_user
from vexa.common.utils import success_response
from vexa.db.dependencies import get_session
from vexa.payments import services as payment_services
from vexa.payments.models import PaymentIntentInput

payments_router = APIRouter()


@payments_router.post("/intent")
async def create_payment_intent(payload: PaymentIntentInput, principal: Principal = Depends(require_user),
                                session: AsyncSession = Depends(get_session)):
    res = await payment_services.create_payment_intent(session, principal.user_id, payload.order_id)
    return success_response(res, 201)


@payments_router.get("/{order_id}")
async def payment_status(order_id: int, principal: Principal = Depends(require_user),
                         session: AsyncSession = Depends(get_session)):
    res = await payment_services.get_payment_status(session, order_id, principal.user_id)
    return success_response(res)
