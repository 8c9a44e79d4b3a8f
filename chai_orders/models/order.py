from sqlalchemy import Column, DateTime, Integer, JSON, Numeric, String, Text, func
from .base import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(40), nullable=False, unique=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255), nullable=True)
    items = Column(JSON, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(String(32), nullable=False, default="pending")
    payment_method = Column(String(32), nullable=False, default="cash")
    order_type = Column(String(32), nullable=False, default="delivery")
    delivery_address = Column(JSON, nullable=False)
    special_instructions = Column(Text, nullable=True)

    # set once the courier accepts the order
    courier_order_id = Column(String(64), nullable=True)
    shipment_id = Column(String(64), nullable=True)
    courier_name = Column(String(128), nullable=True)
    awb_code = Column(String(64), nullable=True)
    tracking_status = Column(String(64), nullable=True)

    order_date = Column(DateTime, nullable=False, server_default=func.now())
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Order {self.order_number} {self.status}/{self.payment_status}>"
