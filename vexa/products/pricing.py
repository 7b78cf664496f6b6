from datetime import datetime
from decimal import Decimal
from typing import Optional
from vexa.common.utils import as_utc, now, to_money
from vexa.schema.full_schema import Product, ProductVariant


def _discount_live(price: Optional[Decimal], ends_at: Optional[datetime], at: datetime) -> bool:
    if price is None:
        return False
    ends_at = as_utc(ends_at)
    return ends_at is None or ends_at > at


def resolve_unit_price(product: Product, variant: Optional[ProductVariant] = None,
                       at: Optional[datetime] = None) -> Optional[Decimal]:
    """Effective unit price at read time.

    variant discounted price (while the discount runs) -> variant base price ->
    product discounted price (while the discount runs) -> product base price.
    Returns None when nothing is priced.
    """
    at = at or now()
    if variant is not None:
        if _discount_live(variant.price, variant.discount_ends_at, at):
            return to_money(variant.price)
        if variant.base_price is not None:
            return to_money(variant.base_price)
    if _discount_live(product.price, product.discount_ends_at, at):
        return to_money(product.price)
    if product.base_price is not None:
        return to_money(product.base_price)
    return None
