from decimal import Decimal
from pydantic import BaseModel, Field


class CouponCodeInput(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class ApplyCouponInput(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    cart_total: Decimal = Field(ge=0)
