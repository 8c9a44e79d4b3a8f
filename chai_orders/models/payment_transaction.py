from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, func
from .base import Base


class PaymentTransaction(Base):
    """One attempt to collect payment for an order."""

    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(String(64), nullable=False, unique=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default="initiated")
    payment_gateway = Column(String(32), nullable=False, default="easebuzz")
    gateway_transaction_id = Column(String(128), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
