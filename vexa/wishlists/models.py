from typing import Optional
from pydantic import BaseModel


class WishlistItemInput(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
