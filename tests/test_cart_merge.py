import pytest
from sqlalchemy import select
from vexa.cart import services as cart_services
from vexa.cart.merge import merge_carts
from vexa.cart.owner import GuestOwner, UserOwner
from vexa.schema.full_schema import Cart, CartItem


async def _carts(db):
    async with db.session() as s:
        res = await s.execute(select(Cart.id, Cart.user_id, Cart.session_id).order_by(Cart.id))
        return [tuple(r) for r in res.all()]


async def _items(db, cart_id):
    async with db.session() as s:
        res = await s.execute(
            select(CartItem.product_id, CartItem.variant_id, CartItem.quantity)
            .where(CartItem.cart_id == cart_id).order_by(CartItem.product_id, CartItem.variant_key)
        )
        return [tuple(r) for r in res.all()]


@pytest.mark.asyncio
async def test_merge_sums_matching_lines_and_drops_guest_cart(db, db_session, make_user, make_product, stock_of):
    uid = await make_user()
    p1 = await make_product(stock=10)

    guest = await cart_services.add_item(db_session, GuestOwner("S"), p1, None, 1)
    mine = await cart_services.add_item(db_session, UserOwner(uid), p1, None, 2)

    view = await merge_carts(db_session, uid, "S")

    assert view["cart_id"] == mine["cart_id"]
    assert [(it["product_id"], it["quantity"]) for it in view["items"]] == [(p1, 3)]
    assert await _carts(db) == [(mine["cart_id"], uid, "S")]
    assert guest["cart_id"] != mine["cart_id"]
    # merge is data-only, nothing is reserved twice
    assert await stock_of(p1) == 7


@pytest.mark.asyncio
async def test_merge_moves_unmatched_lines(db, db_session, make_user, make_product, make_variant):
    uid = await make_user()
    p1 = await make_product(stock=10)
    p2 = await make_product(stock=10)
    v2 = await make_variant(p2, stock=10)

    await cart_services.add_item(db_session, GuestOwner("S2"), p2, v2, 2)
    await cart_services.add_item(db_session, GuestOwner("S2"), p1, None, 1)
    mine = await cart_services.add_item(db_session, UserOwner(uid), p1, None, 4)

    await merge_carts(db_session, uid, "S2")

    assert await _items(db, mine["cart_id"]) == sorted([(p1, None, 5), (p2, v2, 2)])


@pytest.mark.asyncio
async def test_merge_twice_is_idempotent(db, db_session, make_user, make_product):
    uid = await make_user()
    p1 = await make_product(stock=10)
    await cart_services.add_item(db_session, GuestOwner("S3"), p1, None, 1)
    mine = await cart_services.add_item(db_session, UserOwner(uid), p1, None, 2)

    await merge_carts(db_session, uid, "S3")
    carts_once = await _carts(db)
    items_once = await _items(db, mine["cart_id"])

    await merge_carts(db_session, uid, "S3")

    assert await _carts(db) == carts_once
    assert await _items(db, mine["cart_id"]) == items_once


@pytest.mark.asyncio
async def test_merge_without_any_cart_creates_one_bound_to_both(db, db_session, make_user):
    uid = await make_user()

    view = await merge_carts(db_session, uid, "S4")

    assert view["items"] == []
    assert await _carts(db) == [(view["cart_id"], uid, "S4")]


@pytest.mark.asyncio
async def test_merge_rebinds_lone_guest_cart(db, db_session, make_user, make_product):
    uid = await make_user()
    p1 = await make_product(stock=10)
    guest = await cart_services.add_item(db_session, GuestOwner("S5"), p1, None, 2)

    view = await merge_carts(db_session, uid, "S5")

    assert view["cart_id"] == guest["cart_id"]
    assert await _carts(db) == [(guest["cart_id"], uid, "S5")]
    user_view = await cart_services.get_cart(db_session, UserOwner(uid))
    assert user_view["item_count"] == 2


@pytest.mark.asyncio
async def test_merge_binds_session_to_lone_user_cart(db, db_session, make_user, make_product):
    uid = await make_user()
    p1 = await make_product(stock=10)
    mine = await cart_services.add_item(db_session, UserOwner(uid), p1, None, 1)

    await merge_carts(db_session, uid, "S6")

    assert await _carts(db) == [(mine["cart_id"], uid, "S6")]


@pytest.mark.asyncio
async def test_merge_never_absorbs_another_users_cart(db, db_session, make_user, make_product):
    alice = await make_user()
    bob = await make_user()
    p1 = await make_product(stock=10)

    await merge_carts(db_session, alice, "shared-device")
    alice_view = await cart_services.add_item(db_session, UserOwner(alice), p1, None, 2)

    bob_view = await merge_carts(db_session, bob, "shared-device")

    assert bob_view["items"] == []
    assert await _items(db, alice_view["cart_id"]) == [(p1, None, 2)]
    carts = dict((cid, (u, s)) for cid, u, s in await _carts(db))
    assert carts[alice_view["cart_id"]] == (alice, None)
    assert carts[bob_view["cart_id"]] == (bob, "shared-device")
