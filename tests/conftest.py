import uuid
from decimal import Decimal
import pytest
from sqlalchemy import select
from vexa.db.connection import Database
from vexa.schema.full_schema import (Address, Coupon, CouponType, Orders, OrderStatus, Product,
                                     ProductVariant, Role, Users)


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'vexa_test.db'}")
    await database.connect()
    await database.create_all()
    yield database
    await database.disconnect()


@pytest.fixture
async def db_session(db):
    async with db.session() as session:
        yield session


# factories write through their own session and return primary keys,
# so nothing they create lingers in the identity map of db_session

@pytest.fixture
def make_user(db):
    async def _make(role: str = Role.USER.value, email=None):
        async with db.session() as s:
            user = Users(email=email or f"user-{uuid.uuid4().hex[:8]}@example.com", name="Test User", role=role)
            s.add(user)
            await s.commit()
            return user.id
    return _make


@pytest.fixture
def make_product(db):
    async def _make(base_price="100.00", price=None, discount_ends_at=None, stock=10, sku=None, images=None, name=None):
        async with db.session() as s:
            product = Product(
                name=name or f"product-{uuid.uuid4().hex[:8]}",
                sku=sku or f"SKU-{uuid.uuid4().hex[:6]}",
                images=images if images is not None else ["https://img.example.com/p.png"],
                base_price=Decimal(base_price) if base_price is not None else None,
                price=Decimal(price) if price is not None else None,
                discount_ends_at=discount_ends_at,
                stock=stock,
            )
            s.add(product)
            await s.commit()
            return product.id
    return _make


@pytest.fixture
def make_variant(db):
    async def _make(product_id: int, base_price=None, price=None, discount_ends_at=None, stock=5, sku=None, options=None):
        async with db.session() as s:
            variant = ProductVariant(
                product_id=product_id,
                sku=sku or f"VAR-{uuid.uuid4().hex[:6]}",
                base_price=Decimal(base_price) if base_price is not None else None,
                price=Decimal(price) if price is not None else None,
                discount_ends_at=discount_ends_at,
                options=options if options is not None else [{"attribute": "size", "option": "M"}],
                stock=stock,
            )
            s.add(variant)
            await s.commit()
            return variant.id
    return _make


@pytest.fixture
def make_coupon(db):
    async def _make(code="SAVE10", type=CouponType.PERCENTAGE.value, value="10", expires_at=None,
                    usage_limit=None, is_active=True):
        async with db.session() as s:
            coupon = Coupon(code=code.upper(), type=type, value=Decimal(value), expires_at=expires_at,
                            usage_limit=usage_limit, is_active=is_active)
            s.add(coupon)
            await s.commit()
            return coupon.id
    return _make


@pytest.fixture
def make_address(db):
    async def _make(user_id: int, is_default=True, **fields):
        data = {"name": "Ada", "street": "1 Main St", "city": "Paris", "country": "FR", "postal_code": "75001"}
        data.update(fields)
        async with db.session() as s:
            addr = Address(user_id=user_id, is_default=is_default, **data)
            s.add(addr)
            await s.commit()
            return addr.id
    return _make


@pytest.fixture
def make_order(db):
    # bare order row, for tests that only need something referencing a coupon or a user
    async def _make(user_id: int, coupon_id=None, status=OrderStatus.PENDING.value, total="10.00"):
        async with db.session() as s:
            order = Orders(order_number=f"ORD-T-{uuid.uuid4().hex[:10]}", user_id=user_id, coupon_id=coupon_id,
                           status=status, subtotal=Decimal(total), total_amount=Decimal(total))
            s.add(order)
            await s.commit()
            return order.id
    return _make


@pytest.fixture
def stock_of(db):
    async def _stock(product_id: int, variant_id=None):
        async with db.session() as s:
            if variant_id is not None:
                res = await s.execute(select(ProductVariant.stock).where(ProductVariant.id == variant_id))
            else:
                res = await s.execute(select(Product.stock).where(Product.id == product_id))
            return res.scalar_one()
    return _stock


@pytest.fixture
def checkout_payload():
    def _payload(coupon=None, shipping_price="10", is_percentage=False, address_id=None, transaction_id=None, **address):
        addr = {"name": "Ada", "email": "ada@example.com", "street": "1 Main St", "city": "Paris",
                "postal_code": "75001", "country": "FR", "phone": "+33100000000"}
        addr.update(address)
        if address_id is not None:
            addr["id"] = address_id
        return {
            "address": addr,
            "payment": {"provider": "STRIPE", "transaction_id": transaction_id},
            "coupon": coupon,
            "shipping_option": {"id": "std", "label": "Standard", "price": shipping_price, "is_percentage": is_percentage},
        }
    return _payload
