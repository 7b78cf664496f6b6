from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from vexa.auth.dependencies import Principal, require_admin, require_user
from vexa.common.utils import success_response
from vexa.db.dependencies import get_session
from vexa.orders import services as order_services
from vexa.orders.models import CreateOrderInput, UpdateOrderStatusInput

orders_router = APIRouter()
orders_admin_router = APIRouter(dependencies=[Depends(require_admin)])


# checkout: the whole cart becomes one order
@orders_router.post("")
async def place_order(payload: CreateOrderInput, principal: Principal = Depends(require_user),
                      session: AsyncSession = Depends(get_session)):
    order = await order_services.create_order(session, principal.user_id, payload)
    return success_response(order, status.HTTP_201_CREATED)


@orders_router.get("")
async def my_orders(principal: Principal = Depends(require_user), session: AsyncSession = Depends(get_session)):
    orders = await order_services.get_user_orders(session, principal.user_id)
    return success_response(orders)


@orders_router.get("/number/{order_number}")
async def order_by_number(order_number: str, principal: Principal = Depends(require_user),
                          session: AsyncSession = Depends(get_session)):
    order = await order_services.get_order_by_number(session, order_number, principal.user_id)
    return success_response(order)


@orders_router.get("/{order_id}")
async def order_detail(order_id: int, principal: Principal = Depends(require_user),
                       session: AsyncSession = Depends(get_session)):
    user_id = None if principal.is_admin else principal.user_id
    order = await order_services.get_order(session, order_id, user_id)
    return success_response(order)


@orders_router.post("/{order_id}/cancel")
async def cancel_order(order_id: int, principal: Principal = Depends(require_user),
                       session: AsyncSession = Depends(get_session)):
    order = await order_services.cancel_order(session, order_id, principal.user_id)
    return success_response(order)


@orders_admin_router.get("")
async def all_orders(session: AsyncSession = Depends(get_session)):
    orders = await order_services.get_all_orders(session)
    return success_response(orders)


@orders_admin_router.patch("/{order_id}/status")
async def update_order_status(order_id: int, payload: UpdateOrderStatusInput,
                              session: AsyncSession = Depends(get_session)):
    order = await order_services.update_order_status(session, order_id, payload.status)
    return success_response(order)
