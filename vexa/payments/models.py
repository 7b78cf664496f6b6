from pydantic import BaseModel


class PaymentIntentInput(BaseModel):
    order_id: int
