"""Service layer: persistence, integrations and the order lifecycle."""

from .auth_service import AuthService
from .easebuzz_service import EasebuzzService
from .order_service import OrderService
from .order_store import OrderStore
from .shiprocket_service import ShiprocketService
from .token_provider import DbTokenProvider, TokenProvider

__all__ = [
    "AuthService",
    "DbTokenProvider",
    "EasebuzzService",
    "OrderService",
    "OrderStore",
    "ShiprocketService",
    "TokenProvider",
]
