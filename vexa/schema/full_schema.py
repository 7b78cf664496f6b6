import enum
import uuid
from decimal import Decimal
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint, Uuid
from uuid6 import uuid7
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Column, SQLModel, Field, String
from vexa.common.utils import now


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


# users are owned by the auth collaborator; kept here as the FK target for carts, addresses and orders
class Users(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(default=None,sa_column=Column(String(320), nullable=True,unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    role: str = Field(default=Role.USER.value, sa_column=Column(String(16), nullable=False, default=Role.USER.value))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


class Address(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False))
    name: str = Field(sa_column=Column(String(128), nullable=False))
    email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True))
    street: str = Field(sa_column=Column(String(255), nullable=False))
    city: str = Field(sa_column=Column(String(128), nullable=False))
    postal_code: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    country: str = Field(sa_column=Column(String(64), nullable=False))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    is_default: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

# ---------------------------------------------------------------------------------------------------------

# product.stock is the roll-up of its variants' stock when variants exist (kept in step by the inventory ledger)
class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(), unique=True, index=True, nullable=False)
    )
    name: str = Field(sa_column=Column(String(255), nullable=False,unique=True))
    sku: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    base_price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(12, 2), nullable=True))
    price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(12, 2), nullable=True))  # discounted price
    discount_ends_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    stock: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)


class ProductVariant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(sa_column=Column(ForeignKey("product.id", ondelete="CASCADE"), index=True, nullable=False))
    sku: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    base_price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(12, 2), nullable=True))
    price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(12, 2), nullable=True))
    discount_ends_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    # [{"attribute": "Color", "option": "Red"}, ...]
    options: List[Dict[str, str]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    stock: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),)

#-----------------------------------------------------------------------------------------------------------

# a cart is bound to a user, to an anonymous session, or to both right after a merge
class Cart(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True,unique= True),
    )
    session_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True,unique=True),
    )
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


# variant_key mirrors variant_id with 0 for "no variant" so the unique constraint also holds for plain products
# (NULLs never collide in a unique index)
class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(sa_column=Column(ForeignKey("cart.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(ForeignKey("product.id", ondelete="CASCADE"), nullable=False))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), nullable=True))
    variant_key: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "variant_key", name="uq_cart_product_variant"),
        CheckConstraint("quantity > 0", name="ck_cartitem_quantity_positive"),
    )


class Wishlist(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(
        default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True,unique= True),
    )
    session_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True,unique=True),
    )
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


class WishlistItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    wishlist_id: int = Field(sa_column=Column(ForeignKey("wishlist.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(ForeignKey("product.id", ondelete="CASCADE"), nullable=False))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), nullable=True))
    variant_key: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (
        UniqueConstraint("wishlist_id", "product_id", "variant_key", name="uq_wishlist_product_variant"),
    )

# --------------------------------------------------------------------------------------------

class CouponType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


# usage is not stored: it is the number of orders referencing the coupon
class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(sa_column=Column(String(64), nullable=False, unique=True, index=True))
    type: str = Field(default=CouponType.PERCENTAGE.value, sa_column=Column(String(16), nullable=False))
    value: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    usage_limit: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

# --------------------------------------------------------------------------------------------

class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentProvider(str, enum.Enum):
    STRIPE = "STRIPE"
    PAYPAL = "PAYPAL"
    MANUAL = "MANUAL"


# User --> Orders (1:many). Everything but status is written once at checkout.
class Orders(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(), unique=True, index=True, nullable=False))
    order_number: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True))
    address_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("address.id", ondelete="SET NULL"), nullable=True))
    coupon_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("coupon.id", ondelete="SET NULL"), index=True, nullable=True))
    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    currency: str = Field(default="EUR", sa_column=Column(String(8), nullable=False))
    subtotal: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False))
    shipping_cost: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False))
    discount_amount: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False))
    total_amount: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False))
    shipping_address_json: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


class OrderItem(SQLModel, table=True):
    """FKs kept for traceability and stock restoration only; `data` is the immutable display snapshot."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True))
    product_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("product.id", ondelete="SET NULL"), nullable=True))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("productvariant.id", ondelete="SET NULL"), nullable=True))
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    unit_price: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(), unique=True, index=True, nullable=False))
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True))
    provider: str = Field(default=PaymentProvider.STRIPE.value, sa_column=Column(String(32), nullable=False))
    amount: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    currency: str = Field(default="EUR", sa_column=Column(String(8), nullable=False))
    status: str = Field(default=PaymentStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True, index=True))
    meta: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))
    paid_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
