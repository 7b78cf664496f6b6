from decimal import Decimal
import pytest
from sqlalchemy import func, select
from vexa.cart import services as cart_services
from vexa.cart.owner import UserOwner
from vexa.common.custom_exceptions import (BadRequestError, CouponInvalidError, EmptyCartError,
                                           NotFoundError, PriceUnavailableError)
from vexa.orders import services as order_services
from vexa.orders.models import CreateOrderInput
from vexa.schema.full_schema import Address, CartItem, Orders, Payment


async def _count(db, column, *where):
    async with db.session() as s:
        res = await s.execute(select(func.count(column)).where(*where))
        return res.scalar_one()


@pytest.mark.asyncio
async def test_checkout_totals_with_percentage_coupon(db, db_session, make_user, make_product, make_coupon,
                                                      checkout_payload, stock_of):
    uid = await make_user()
    p1 = await make_product(base_price="100.00", stock=5, name="Desk Lamp", sku="LAMP-1")
    await make_coupon(code="TEN", value="10")
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 2)

    order = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="ten")))

    assert order["status"] == "PENDING"
    assert order["subtotal"] == Decimal("200.00")
    assert order["shipping_cost"] == Decimal("10.00")
    assert order["discount_amount"] == Decimal("20.00")
    assert order["total_amount"] == Decimal("190.00")
    assert order["coupon"]["code"] == "TEN"
    assert order["order_number"].startswith("ORD-")

    item = order["items"][0]
    assert item["quantity"] == 2
    assert item["data"]["name"] == "Desk Lamp"
    assert item["data"]["sku"] == "LAMP-1"
    assert Decimal(item["data"]["price"]) == Decimal("100.00")
    assert item["data"]["variant"] is None

    # the cart is emptied but the stock stays taken
    assert await _count(db, CartItem.id) == 0
    assert await stock_of(p1) == 3


@pytest.mark.asyncio
async def test_discount_never_touches_shipping(db_session, make_user, make_product, make_coupon, checkout_payload):
    uid = await make_user()
    p1 = await make_product(base_price="30.00", stock=5)
    await make_coupon(code="BIG", type="FIXED", value="500")
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)

    order = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="BIG")))

    assert order["discount_amount"] == Decimal("30.00")
    assert order["total_amount"] == Decimal("10.00")


@pytest.mark.asyncio
async def test_percentage_shipping_and_variant_snapshot(db_session, make_user, make_product, make_variant,
                                                        checkout_payload):
    uid = await make_user()
    p1 = await make_product(base_price="40.00", stock=10)
    v1 = await make_variant(p1, base_price="60.00", stock=10, sku="TEE-M",
                            options=[{"attribute": "size", "option": "M"}, {"attribute": "color", "option": "red"}])
    await cart_services.add_item(db_session, UserOwner(uid), p1, v1, 2)

    order = await order_services.create_order(
        db_session, uid, CreateOrderInput(**checkout_payload(shipping_price="5", is_percentage=True)))

    assert order["subtotal"] == Decimal("120.00")
    assert order["shipping_cost"] == Decimal("6.00")
    assert order["total_amount"] == Decimal("126.00")
    variant = order["items"][0]["data"]["variant"]
    assert variant["sku"] == "TEE-M"
    assert variant["options"] == [{"attribute": "size", "option": "M"}, {"attribute": "color", "option": "red"}]


@pytest.mark.asyncio
async def test_empty_cart_is_rejected(db, db_session, make_user, checkout_payload):
    uid = await make_user()

    with pytest.raises(EmptyCartError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))

    await cart_services.get_or_create_cart(db_session, UserOwner(uid))
    with pytest.raises(EmptyCartError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))

    assert await _count(db, Orders.id) == 0


@pytest.mark.asyncio
async def test_unpriced_item_rolls_everything_back(db, db_session, make_user, make_product, checkout_payload, stock_of):
    uid = await make_user()
    priced = await make_product(base_price="10.00", stock=5)
    unpriced = await make_product(base_price=None, stock=5)
    await cart_services.add_item(db_session, UserOwner(uid), priced, None, 1)
    await cart_services.add_item(db_session, UserOwner(uid), unpriced, None, 1)

    with pytest.raises(PriceUnavailableError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))

    assert await _count(db, Orders.id) == 0
    assert await _count(db, Payment.id) == 0
    assert await _count(db, Address.id) == 0
    assert await _count(db, CartItem.id) == 2
    assert await stock_of(priced) == 4


@pytest.mark.asyncio
async def test_invalid_coupon_aborts_checkout(db, db_session, make_user, make_product, make_coupon, checkout_payload):
    uid = await make_user()
    p1 = await make_product(stock=5)
    await make_coupon(code="OFF", is_active=False)
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)

    with pytest.raises(CouponInvalidError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="OFF")))
    with pytest.raises(NotFoundError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="MISSING")))

    assert await _count(db, Orders.id) == 0
    assert await _count(db, CartItem.id) == 1


@pytest.mark.asyncio
async def test_coupon_usage_limit_counts_checkouts(db_session, make_user, make_product, make_coupon, checkout_payload):
    uid = await make_user()
    p1 = await make_product(stock=5)
    await make_coupon(code="SOLO", usage_limit=1)

    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="SOLO")))

    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    with pytest.raises(CouponInvalidError) as exc:
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(coupon="SOLO")))
    assert exc.value.reason == CouponInvalidError.LIMIT_REACHED


@pytest.mark.asyncio
async def test_new_address_becomes_default_only_once(db, db_session, make_user, make_product, checkout_payload):
    uid = await make_user()
    p1 = await make_product(stock=5)

    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    first = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    second = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(street="9 Side St")))

    async with db.session() as s:
        res = await s.execute(select(Address.id, Address.is_default).where(Address.user_id == uid).order_by(Address.id))
        rows = [tuple(r) for r in res.all()]
    assert rows == [(first["address_id"], True), (second["address_id"], False)]
    assert second["shipping_address"]["street"] == "9 Side St"


@pytest.mark.asyncio
async def test_existing_address_is_updated_in_place(db, db_session, make_user, make_product, make_address,
                                                    checkout_payload):
    uid = await make_user()
    p1 = await make_product(stock=5)
    addr_id = await make_address(uid, city="Paris")
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)

    order = await order_services.create_order(
        db_session, uid, CreateOrderInput(**checkout_payload(address_id=addr_id, city="Lyon")))

    assert order["address_id"] == addr_id
    async with db.session() as s:
        res = await s.execute(select(Address.city).where(Address.id == addr_id))
        assert res.scalar_one() == "Lyon"
    assert await _count(db, Address.id, Address.user_id == uid) == 1


@pytest.mark.asyncio
async def test_foreign_or_missing_address_is_rejected(db, db_session, make_user, make_product, make_address,
                                                      checkout_payload):
    uid = await make_user()
    other = await make_user()
    p1 = await make_product(stock=5)
    foreign = await make_address(other)
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)

    with pytest.raises(BadRequestError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(address_id=foreign)))
    with pytest.raises(NotFoundError):
        await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(address_id=98765)))

    assert await _count(db, Orders.id) == 0


@pytest.mark.asyncio
async def test_payment_status_follows_transaction_id(db_session, make_user, make_product, checkout_payload):
    uid = await make_user()
    p1 = await make_product(stock=5)

    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    pending = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload()))
    await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)
    paid = await order_services.create_order(db_session, uid, CreateOrderInput(**checkout_payload(transaction_id="ch_123")))

    assert [p["status"] for p in pending["payments"]] == ["PENDING"]
    assert [p["status"] for p in paid["payments"]] == ["COMPLETED"]
    assert paid["payments"][0]["transaction_id"] == "ch_123"
    assert paid["payments"][0]["amount"] == paid["total_amount"]
