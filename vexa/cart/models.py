from typing import Optional
from pydantic import BaseModel, Field


class CartItemInput(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)


class CartItemQuantityInput(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(ge=1)
