import secrets
import time
from decimal import Decimal
from vexa.common.utils import to_money
from vexa.orders.models import ShippingOptionInput


def compute_shipping_cost(option: ShippingOptionInput, subtotal: Decimal) -> Decimal:
    # percentage options are charged on the product subtotal before any discount
    if option.is_percentage:
        return to_money(subtotal * option.price / Decimal(100))
    return to_money(option.price)


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}-{secrets.randbelow(1000):03d}"
