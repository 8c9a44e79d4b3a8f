"""Typed shapes for the JSON columns of an order and the checkout request."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from ..utils.validators import missing_fields, parse_positive_int, parse_price


REQUIRED_ORDER_FIELDS = ("name", "phone", "street", "city", "taluka", "district", "pincode", "product", "price", "qty")

PAYMENT_METHODS = {"cash", "card", "upi", "wallet", "online"}


def map_payment_method(method: Optional[str]) -> str:
    """Map the storefront's payment choice to the stored enum (``cod`` is cash)."""
    value = (method or "").strip().lower()
    if value == "cod":
        return "cash"
    if value in PAYMENT_METHODS:
        return value
    return "cash"


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass
class LineItem:
    name: str
    price: Decimal
    quantity: int
    weight: Optional[str] = None
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "price": float(self.price),
            "quantity": self.quantity,
            "weight": self.weight,
            "images": list(self.images),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LineItem"]:
        """Parse a stored item; returns None for rows that are not usable."""
        if not isinstance(data, dict):
            return None
        try:
            price = Decimal(str(data.get("price") or 0))
            quantity = int(data.get("quantity") or 1)
        except (InvalidOperation, TypeError, ValueError):
            return None
        images = data.get("images")
        if not isinstance(images, list):
            # rows written before images became a list
            images = [data[k] for k in ("image1", "image2") if data.get(k)]
        weight = data.get("weight")
        return cls(
            name=_text(data.get("name")) or "Item",
            price=price,
            quantity=quantity,
            weight=str(weight) if weight not in (None, "") else None,
            images=[str(i) for i in images if i],
        )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class DeliveryAddress:
    street: str
    city: str
    taluka: str
    district: str
    pincode: str
    landmark: str = ""
    state: str = "Maharashtra"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "DeliveryAddress":
        if not isinstance(data, dict):
            data = {}
        return cls(
            street=_text(data.get("street")),
            city=_text(data.get("city")),
            taluka=_text(data.get("taluka")),
            district=_text(data.get("district")),
            pincode=_text(data.get("pincode")),
            landmark=_text(data.get("landmark")),
            state=_text(data.get("state")) or "Maharashtra",
        )

    def one_line(self) -> str:
        parts = [self.street, self.city, self.taluka, self.district, self.state, self.pincode]
        return ", ".join(p for p in parts if p)


@dataclass
class CheckoutInput:
    customer_name: str
    customer_phone: str
    address: DeliveryAddress
    item: LineItem
    payment_method: str = "cash"
    customer_email: Optional[str] = None
    special_instructions: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], *, require_email: bool = False) -> "CheckoutInput":
        """Build from the storefront form; raises ValidationError listing missing fields."""
        payload = payload or {}
        required = REQUIRED_ORDER_FIELDS + (("email",) if require_email else ())
        missing = missing_fields(payload, required)
        if missing:
            raise ValidationError(fields=missing)

        price = parse_price(payload.get("price"), "price")
        quantity = parse_positive_int(payload.get("qty"), "qty")
        image = _text(payload.get("image"))
        image2 = _text(payload.get("image2")) or image

        return cls(
            customer_name=_text(payload.get("name")),
            customer_phone=_text(payload.get("phone")),
            customer_email=_text(payload.get("email")) or None,
            address=DeliveryAddress.from_dict(payload),
            item=LineItem(
                name=_text(payload.get("product")),
                price=price,
                quantity=quantity,
                weight=_text(payload.get("weight")) or None,
                images=[i for i in (image, image2) if i],
            ),
            payment_method=map_payment_method(payload.get("payment")),
            special_instructions=_text(payload.get("special_instructions")) or None,
        )
