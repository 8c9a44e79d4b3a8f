"""Error taxonomy shared by services and routes.

Every error carries the HTTP status the routes answer with. Integration
errors (courier, token) are caught by the order service during checkout and
reported next to a successful order instead of failing the request.
"""

from __future__ import annotations

from typing import Iterable, Optional


class OrderSystemError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(OrderSystemError):
    status_code = 400
    public_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, fields: Iterable[str] = ()) -> None:
        self.fields = list(fields)
        if message is None and self.fields:
            message = f"Missing required fields: {', '.join(self.fields)}"
        super().__init__(message)


class NotFoundError(OrderSystemError):
    status_code = 404
    public_message = "Not found"


class InvalidSignatureError(OrderSystemError):
    status_code = 400
    public_message = "Invalid payment response"


class AuthenticationError(OrderSystemError):
    status_code = 401
    public_message = "Invalid credentials"


class AccountLockedError(OrderSystemError):
    status_code = 423
    public_message = "Account is temporarily locked due to multiple failed login attempts"


class AlreadyRegisteredError(OrderSystemError):
    status_code = 409
    public_message = "Order is already registered with the courier"


class AlreadyShippedError(OrderSystemError):
    status_code = 409
    public_message = "Order already has a courier order"


class NoShipmentError(OrderSystemError):
    status_code = 409
    public_message = "Order has no shipment yet"


class IntegrationError(OrderSystemError):
    """Failure talking to the payment gateway or courier."""

    status_code = 502
    public_message = "Upstream service error"


class CourierApiError(IntegrationError):
    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, body=None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class CourierTimeoutError(IntegrationError):
    status_code = 504
    public_message = "Courier service timed out"


class TokenAcquisitionError(IntegrationError):
    public_message = "Could not authenticate with the courier service"


class PersistenceError(OrderSystemError):
    status_code = 500
    public_message = "Storage unavailable"
