from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field
from vexa.schema.full_schema import OrderStatus, PaymentProvider


class AddressInput(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1, max_length=128)
    email: Optional[EmailStr] = None
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=128)
    postal_code: Optional[str] = Field(default=None, max_length=32)
    country: str = Field(min_length=1, max_length=64)
    phone: Optional[str] = Field(default=None, max_length=32)

    def address_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"})


class PaymentInput(BaseModel):
    provider: PaymentProvider = PaymentProvider.STRIPE
    transaction_id: Optional[str] = Field(default=None, max_length=128)
    metadata: Optional[Dict[str, Any]] = None


class ShippingOptionInput(BaseModel):
    id: str
    label: str
    price: Decimal = Field(ge=0)
    is_percentage: bool = False


class CreateOrderInput(BaseModel):
    address: AddressInput
    payment: PaymentInput = Field(default_factory=PaymentInput)
    coupon: Optional[str] = None
    shipping_option: ShippingOptionInput


class UpdateOrderStatusInput(BaseModel):
    status: OrderStatus


# stored verbatim in orderitem.data, never re-derived from the catalog
class VariantOptionSnapshot(BaseModel):
    attribute: str
    option: str


class VariantSnapshot(BaseModel):
    sku: Optional[str] = None
    options: List[VariantOptionSnapshot] = Field(default_factory=list)


class OrderItemSnapshot(BaseModel):
    name: str
    sku: Optional[str] = None
    quantity: int
    price: Decimal
    image: Optional[str] = None
    variant: Optional[VariantSnapshot] = None
