import asyncio
import pytest
from sqlalchemy import func, select
from vexa.cart import services as cart_services
from vexa.cart.owner import GuestOwner, UserOwner
from vexa.common.custom_exceptions import AppError, EmptyCartError, InsufficientStockError, InvalidStateError
from vexa.orders import services as order_services
from vexa.orders.models import CreateOrderInput
from vexa.schema.full_schema import CartItem, Orders

# Every contender gets its own session, the way two requests would.


async def _in_own_session(db, fn, *args):
    async with db.session() as s:
        try:
            return await fn(s, *args)
        except AppError as exc:
            return exc


async def _line_quantity(db, product_id):
    async with db.session() as s:
        res = await s.execute(select(CartItem.quantity).where(CartItem.product_id == product_id))
        return res.scalar_one()


@pytest.mark.asyncio
async def test_two_guests_racing_for_the_last_units(db, make_product, stock_of):
    pid = await make_product(stock=3)

    res_a, res_b = await asyncio.gather(
        _in_own_session(db, cart_services.add_item, GuestOwner("race-a"), pid, None, 2),
        _in_own_session(db, cart_services.add_item, GuestOwner("race-b"), pid, None, 2),
    )

    failures = [r for r in (res_a, res_b) if isinstance(r, AppError)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)
    assert await stock_of(pid) == 1


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_line_move_stock_once(db, db_session, make_product, stock_of):
    pid = await make_product(stock=10)
    owner = GuestOwner("race-update")
    await cart_services.add_item(db_session, owner, pid, None, 1)

    results = await asyncio.gather(
        _in_own_session(db, cart_services.update_item_quantity, owner, pid, None, 3),
        _in_own_session(db, cart_services.update_item_quantity, owner, pid, None, 3),
    )

    assert not any(isinstance(r, AppError) for r in results)
    assert await _line_quantity(db, pid) == 3
    assert await stock_of(pid) == 7


@pytest.mark.asyncio
async def test_concurrent_add_and_remove_keep_stock_conserved(db, db_session, make_product, stock_of):
    pid = await make_product(stock=10)
    owner = GuestOwner("race-mixed")
    await cart_services.add_item(db_session, owner, pid, None, 2)

    await asyncio.gather(
        _in_own_session(db, cart_services.add_item, owner, pid, None, 3),
        _in_own_session(db, cart_services.remove_item, owner, pid, None),
        _in_own_session(db, cart_services.add_item, owner, pid, None, 1),
    )

    view = await cart_services.get_cart(db_session, owner)
    in_cart = sum(it["quantity"] for it in view["items"])
    assert in_cart + await stock_of(pid) == 10


@pytest.mark.asyncio
async def test_double_submitted_checkout_places_one_order(db, db_session, make_user, make_product,
                                                         checkout_payload, stock_of):
    uid = await make_user()
    pid = await make_product(base_price="10.00", stock=5)
    await cart_services.add_item(db_session, UserOwner(uid), pid, None, 2)
    payload = CreateOrderInput(**checkout_payload())

    res_a, res_b = await asyncio.gather(
        _in_own_session(db, order_services.create_order, uid, payload),
        _in_own_session(db, order_services.create_order, uid, payload),
    )

    failures = [r for r in (res_a, res_b) if isinstance(r, AppError)]
    assert len(failures) == 1
    assert isinstance(failures[0], EmptyCartError)
    async with db.session() as s:
        res = await s.execute(select(func.count(Orders.id)).where(Orders.user_id == uid))
        assert res.scalar_one() == 1
    assert await stock_of(pid) == 3


@pytest.mark.asyncio
async def test_concurrent_cancels_restock_once(db, db_session, make_user, make_product, checkout_payload, stock_of):
    uid = await make_user()
    pid = await make_product(base_price="10.00", stock=5)
    await cart_services.add_item(db_session, UserOwner(uid), pid, None, 2)
    order = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))

    res_a, res_b = await asyncio.gather(
        _in_own_session(db, order_services.cancel_order, order["id"], uid),
        _in_own_session(db, order_services.cancel_order, order["id"], uid),
    )

    failures = [r for r in (res_a, res_b) if isinstance(r, AppError)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidStateError)
    assert await stock_of(pid) == 5
