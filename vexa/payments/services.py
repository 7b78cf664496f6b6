import secrets
import time
from typing import Any, Dict, List
from vexa.common.custom_exceptions import BadRequestError, UnauthorizedError
from vexa.common.utils import to_money
from vexa.db.utils import atomic
from vexa.orders import repository as order_repo
from vexa.payments.constants import logger
from vexa.schema.full_schema import OrderStatus, Payment, PaymentProvider, PaymentStatus

# No provider SDK is wired in: intents are minted locally and confirmed out of band.


def _provider_ref(prefix: str = "pi") -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


async def create_payment_intent(session, user_id: int, order_id: int) -> Dict[str, Any]:
    async with atomic(session):
        order = await order_repo.get_order_row(session, order_id, lock=True)
        if order.user_id != user_id:
            raise UnauthorizedError("Not authorized to pay for this order")
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise BadRequestError("Cannot pay for cancelled or refunded order", {"status": order.status})

        payments = await order_repo.get_order_payments(session, order.id, lock=True)
        if any(p.status == PaymentStatus.COMPLETED.value for p in payments):
            raise BadRequestError("Order is already paid")

        transaction_id = _provider_ref()
        pending = next((p for p in payments if p.status == PaymentStatus.PENDING.value), None)
        if pending is not None:
            pending.transaction_id = transaction_id
            payment = pending
            reused = True
        else:
            # keep the provider the customer picked at checkout
            provider = payments[0].provider if payments else PaymentProvider.STRIPE.value
            payment = Payment(
                order_id=order.id,
                provider=provider,
                amount=order.total_amount,
                currency=order.currency,
                status=PaymentStatus.PENDING.value,
                transaction_id=transaction_id,
            )
            session.add(payment)
            reused = False
        await session.flush()

        logger.info("payment.intent.created", extra={
            "order_id": order.id, "payment_id": payment.id, "reused": reused,
        })
        return {
            "client_secret": f"{transaction_id}_secret_{secrets.token_urlsafe(8)}",
            "amount": to_money(order.total_amount),
            "currency": order.currency,
            "payment_id": str(payment.public_id),
        }


async def get_payment_status(session, order_id: int, user_id: int) -> List[Dict[str, Any]]:
    async with atomic(session):
        order = await order_repo.get_order_row(session, order_id)
        if order.user_id != user_id:
            raise UnauthorizedError("Not authorized to view this order")
        payments = await order_repo.get_order_payments(session, order.id)
        return [order_repo.serialize_payment(p) for p in payments]
