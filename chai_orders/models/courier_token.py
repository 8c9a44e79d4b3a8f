from sqlalchemy import Column, DateTime, Integer, Text, func
from .base import Base


class CourierToken(Base):
    """Cached courier API bearer token. The newest unexpired row is current."""

    __tablename__ = "courier_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
