from .base import Base
from .admin import Admin
from .checkout import CheckoutInput, DeliveryAddress, LineItem
from .courier_token import CourierToken
from .order import Order
from .payment_transaction import PaymentTransaction

__all__ = [
    "Base",
    "Admin",
    "CheckoutInput",
    "CourierToken",
    "DeliveryAddress",
    "LineItem",
    "Order",
    "PaymentTransaction",
]
