from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..errors import (
    AlreadyRegisteredError,
    AlreadyShippedError,
    IntegrationError,
    NoShipmentError,
    NotFoundError,
    OrderSystemError,
    ValidationError,
)
from ..models.checkout import CheckoutInput, LineItem
from ..models.order import Order
from ..utils.dto import to_admin_row
from .logging import log_event
from .order_store import OrderStore


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def generate_order_number() -> str:
    # unique index on order_number is the real guarantee; the suffix just makes collisions rare
    return f"ORD{int(time.time() * 1000)}{secrets.randbelow(10000):04d}"


@dataclass
class Totals:
    subtotal: Decimal
    tax: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")

    @property
    def total(self) -> Decimal:
        return (self.subtotal + self.tax - self.discount).quantize(CENTS)


class PricingPolicy:
    def price(self, items: List[LineItem]) -> Totals:
        raise NotImplementedError


class FlatPricing(PricingPolicy):
    """Current rule: no tax, no discount."""

    def price(self, items: List[LineItem]) -> Totals:
        subtotal = sum((i.line_total for i in items), Decimal("0"))
        return Totals(subtotal=subtotal.quantize(CENTS))


@dataclass
class CourierOutcome:
    registered: bool
    courier_order_id: Optional[str] = None
    error: Optional[str] = None
    response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckoutResult:
    order: Order
    courier: Optional[CourierOutcome] = None
    payment: Optional[Dict[str, Any]] = None
    integration_error: Optional[str] = None


class OrderService:
    """Creates orders and drives the courier and payment side effects.

    An order that made it to the database is never rolled back because a
    downstream integration failed; checkout reports such failures next to
    the order instead.
    """

    def __init__(self, store: OrderStore, courier=None, payments=None, pricing: Optional[PricingPolicy] = None,
                 number_factory=generate_order_number):
        self.store = store
        self.courier = courier
        self.payments = payments
        self.pricing = pricing or FlatPricing()
        self._number_factory = number_factory

    def create_order(self, checkout: CheckoutInput, *, payment_method: Optional[str] = None) -> Order:
        totals = self.pricing.price([checkout.item])
        if totals.total < 0:
            raise ValidationError("Order total cannot be negative")

        order = self.store.insert_order(
            number_factory=self._number_factory,
            customer_name=checkout.customer_name,
            customer_phone=checkout.customer_phone,
            customer_email=checkout.customer_email,
            items=[checkout.item.to_dict()],
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            discount_amount=totals.discount,
            total_amount=totals.total,
            status="pending",
            payment_status="pending",
            payment_method=payment_method or checkout.payment_method,
            order_type="delivery",
            delivery_address=checkout.address.to_dict(),
            special_instructions=checkout.special_instructions,
        )
        log_event("info", "order.created", order_id=order.id, order_number=order.order_number,
                  total=float(order.total_amount), payment_method=order.payment_method)
        return order

    def register_with_courier(self, order: Order) -> CourierOutcome:
        if order.courier_order_id:
            raise AlreadyRegisteredError()
        try:
            payload = self.courier.transform_order(order)
            response = self.courier.create_order(payload)
        except IntegrationError as exc:
            log_event("warning", "courier.registration_failed", order_number=order.order_number,
                      error=exc.message, kind=type(exc).__name__)
            return CourierOutcome(registered=False, error=exc.message)

        courier_order_id = str(response["order_id"])
        if not self.store.set_courier_fields(order.id, courier_order_id=courier_order_id):
            logger.warning("order %s was registered concurrently; remote order %s is a duplicate",
                           order.order_number, courier_order_id)
            raise AlreadyRegisteredError()
        order.courier_order_id = courier_order_id
        log_event("info", "courier.registered", order_number=order.order_number,
                  courier_order_id=courier_order_id, channel_order_id=payload.get("order_id"))
        return CourierOutcome(registered=True, courier_order_id=courier_order_id, response=response)

    def checkout(self, checkout: CheckoutInput, *, register: bool = True) -> CheckoutResult:
        order = self.create_order(checkout)
        result = CheckoutResult(order=order)
        if register and self.courier is not None:
            try:
                result.courier = self.register_with_courier(order)
                result.integration_error = result.courier.error
            except OrderSystemError as exc:
                logger.exception("courier registration failed after order %s was stored", order.order_number)
                result.integration_error = exc.message
        return result

    def checkout_online(self, checkout: CheckoutInput, *, success_url: str, failure_url: str) -> CheckoutResult:
        order = self.create_order(checkout, payment_method="online")
        result = CheckoutResult(order=order)
        try:
            result.payment = self.payments.initiate_payment(
                order, email=checkout.customer_email, success_url=success_url, failure_url=failure_url
            )
        except OrderSystemError as exc:
            logger.exception("payment initiation failed after order %s was stored", order.order_number)
            result.integration_error = exc.message
        return result

    def get_order(self, order_id: int) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def create_shipment_for_order(self, order_id: int) -> Dict[str, Any]:
        order = self.get_order(order_id)
        if order.courier_order_id:
            raise AlreadyShippedError()

        data = self.courier.create_shipment(self.courier.transform_order(order))
        fields = {
            "courier_order_id": str(data["order_id"]),
            "shipment_id": str(data["shipment_id"]),
            "awb_code": data.get("awb_code"),
            "courier_name": data.get("courier_name"),
            "tracking_status": data.get("status") or "NEW",
        }
        if not self.store.set_courier_fields(order.id, **fields):
            raise AlreadyShippedError()
        log_event("info", "courier.shipment_created", order_number=order.order_number, **fields)
        return {"order": self.get_order(order_id), "shipment": data}

    def get_tracking(self, order_id: int) -> Dict[str, Any]:
        order = self.get_order(order_id)
        if not order.shipment_id:
            raise NoShipmentError()

        tracking = self.courier.get_tracking_details(order.shipment_id)
        current = _current_status(tracking)
        if current and current != order.tracking_status:
            order = self.store.update_order(order.id, tracking_status=current)
        return {
            "order_number": order.order_number,
            "courier_order_id": order.courier_order_id,
            "shipment_id": order.shipment_id,
            "awb_code": order.awb_code,
            "courier_name": order.courier_name,
            "tracking_status": order.tracking_status,
            "tracking": tracking,
        }

    def list_orders(self, *, limit: int = 200, offset: int = 0) -> List[Dict]:
        return [to_admin_row(o) for o in self.store.list_orders(limit=limit, offset=offset)]

    def summary(self) -> Dict:
        return self.store.summary()

    def delete_order(self, order_number: str) -> None:
        if not order_number:
            raise ValidationError("orderNumber is required")
        if not self.store.delete_order_by_number(order_number):
            raise NotFoundError("Order not found")
        log_event("info", "order.deleted", order_number=order_number)


def _current_status(tracking: Any) -> Optional[str]:
    """Pull the current status out of a Shiprocket tracking payload."""
    if not isinstance(tracking, dict):
        return None
    data = tracking.get("tracking_data")
    if not isinstance(data, dict):
        return None
    tracks = data.get("shipment_track") or []
    if tracks and isinstance(tracks[0], dict) and tracks[0].get("current_status"):
        return str(tracks[0]["current_status"])
    status = data.get("shipment_status")
    return str(status) if status not in (None, "") else None
