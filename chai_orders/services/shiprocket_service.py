"""
Shiprocket courier integration.

- Turns a stored order into Shiprocket's ad-hoc order payload
- Creates remote orders (optionally with a shipment) and fetches tracking
- Bearer tokens come from a TokenProvider; a 401 drops the token and retries once
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import requests

from ..errors import CourierApiError, CourierTimeoutError
from ..models.checkout import DeliveryAddress, LineItem
from .token_provider import TokenProvider


DEFAULT_WEIGHT_KG = 1.2

# Shipper / pickup identity registered with Shiprocket
PICKUP_LOCATION = "GRADUATE GULACHA CHAHA&LASSI PVTLTD"
SHIPPER_NAME = "GRADUATE GULACHA CHAHA"
SHIPPER_EMAIL = "info@gradgulachacha.in"
SHIPPER_PHONE = "8459005790"
SHIPPER_ADDRESS = "01 AIRPORT ROAD GANESHWADI, OPPOSITE NISARGA DAIRY, SHIRDI, Ahmed Nagar, Maharashtra, India, 423109"
SHIPPER_CITY = "Shirdi"
SHIPPER_STATE = "Maharashtra"
SHIPPER_PINCODE = "423109"
DEFAULT_ITEM_NAME = "Gulacha Chaha Pack"

PACKAGE_DIMENSIONS = {"length": 30, "breadth": 20, "height": 10}

_NUMERIC_PREFIX = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+))")


def split_name(full_name: Optional[str]) -> Tuple[str, str]:
    """First token is the first name, last token the last name; middle names are dropped."""
    parts = full_name.split() if isinstance(full_name, str) else []
    if not parts:
        return "Customer", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[-1]


def _numeric_prefix(text: str) -> Optional[float]:
    match = _NUMERIC_PREFIX.match(text)
    return float(match.group(1)) if match else None


def convert_weight_to_kg(weight: Any) -> float:
    """Accepts "900g", "900", 900, "1.2kg"; bare numbers are grams."""
    if weight in (None, ""):
        return DEFAULT_WEIGHT_KG
    text = str(weight).lower().strip()
    value = _numeric_prefix(text)
    if value is not None and "kg" not in text:
        value = value / 1000
    if value is None or value <= 0:
        return DEFAULT_WEIGHT_KG
    return value


def channel_order_id(now: Optional[datetime] = None) -> str:
    # Shiprocket dedupes on this id, so it must differ on every call
    now = now or datetime.utcnow()
    suffix = str(int(time.time() * 1000))[-6:]
    return f"GG-ORDER-{now.strftime('%Y%m%d')}-{suffix}{secrets.token_hex(2).upper()}"


def transform_order(order: Any) -> Dict[str, Any]:
    """Build the Shiprocket ad-hoc order payload for a stored order."""
    items = [i for i in (LineItem.from_dict(x) for x in (getattr(order, "items", None) or [])) if i]
    address = DeliveryAddress.from_dict(getattr(order, "delivery_address", None))
    now = datetime.utcnow()
    first_name, last_name = split_name(getattr(order, "customer_name", None))

    subtotal = float(getattr(order, "subtotal", 0) or 0)
    total = float(getattr(order, "total_amount", None) or subtotal)

    order_items = [
        {
            "name": item.name or DEFAULT_ITEM_NAME,
            "sku": f"GGC-{int(time.time() * 1000)}-{idx}",
            "units": item.quantity,
            "selling_price": float(item.price),
            "tax_amount": 0,
            "discount": 0,
        }
        for idx, item in enumerate(items, start=1)
    ]

    payload = {
        "order_id": channel_order_id(now),
        "order_date": now.strftime("%Y-%m-%d %H:%M:%S"),
        "pickup_location": PICKUP_LOCATION,
        "billing_customer_name": SHIPPER_NAME,
        "billing_last_name": "- ",
        "billing_email": SHIPPER_EMAIL,
        "billing_phone": SHIPPER_PHONE,
        "billing_address": SHIPPER_ADDRESS,
        "billing_city": SHIPPER_CITY,
        "billing_state": SHIPPER_STATE,
        "billing_country": "India",
        "billing_pincode": SHIPPER_PINCODE,
        "shipping_is_billing": False,
        "shipping_customer_name": first_name,
        "shipping_last_name": last_name,
        "shipping_address": ", ".join(p for p in (address.street, address.landmark) if p),
        "shipping_city": address.city or "Unknown",
        "shipping_state": address.state or SHIPPER_STATE,
        "shipping_country": "India",
        "shipping_pincode": address.pincode or "000000",
        "shipping_phone": getattr(order, "customer_phone", None) or "0000000000",
        "payment_method": "COD" if getattr(order, "payment_method", None) == "cash" else "Prepaid",
        "order_items": order_items,
        "sub_total": subtotal,
        "other_charges": 0,
        "total": total,
        "weight": convert_weight_to_kg(items[0].weight if items else None),
        "volumetric_weight": None,
        "shipping_charges": 0,
        "remarks": f"Warehouse SPOC: {SHIPPER_NAME} | {SHIPPER_PHONE}",
        "extra": {
            "warehouse_spoc_name": SHIPPER_NAME,
            "warehouse_spoc_phone": SHIPPER_PHONE,
            "pickup_address_full": SHIPPER_ADDRESS,
        },
    }
    payload.update(PACKAGE_DIMENSIONS)
    return payload


class ShiprocketService:
    """Thin client for the Shiprocket external API."""

    DEFAULT_BASE_URL = "https://apiv2.shiprocket.in/v1/external"

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = DEFAULT_BASE_URL,
        channel_id: Optional[int] = None,
        timeout: float = 20,
    ) -> None:
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.channel_id = channel_id
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def transform_order(self, order: Any) -> Dict[str, Any]:
        payload = transform_order(order)
        if self.channel_id:
            payload["channel_id"] = self.channel_id
        return payload

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/orders/create/adhoc", json=payload)
        if not data.get("order_id"):
            raise CourierApiError("Courier response missing order_id", body=data)
        return data

    def create_shipment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create the remote order and its shipment in one call."""
        data = self._request("POST", "/orders/create/adhoc", json=payload)
        if not data.get("order_id") or not data.get("shipment_id"):
            raise CourierApiError("Courier did not create a shipment", body=data)
        return data

    def get_tracking_details(self, shipment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/courier/track/shipment/{shipment_id}")

    def _request(self, method: str, path: str, json: Optional[Dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        token = self.token_provider.get_valid_token()
        response = self._send(method, url, token, json)
        if response.status_code == 401:
            self.logger.info("courier rejected cached token, refreshing")
            self.token_provider.invalidate(token)
            response = self._send(method, url, self.token_provider.get_valid_token(), json)

        try:
            body = response.json()
        except ValueError:
            body = response.text[:500]

        if not 200 <= response.status_code < 300:
            self.logger.warning("courier %s %s -> HTTP %s: %s", method, path, response.status_code, body)
            message = body.get("message") if isinstance(body, dict) else None
            raise CourierApiError(
                message or f"Courier API error: HTTP {response.status_code}",
                status=response.status_code,
                body=body,
            )
        if not isinstance(body, dict):
            raise CourierApiError("Courier returned a non-JSON response", status=response.status_code, body=body)
        return body

    def _send(self, method: str, url: str, token: str, json: Optional[Dict]):
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {token}"}
        try:
            return requests.request(method, url, headers=headers, json=json, timeout=self.timeout)
        except requests.exceptions.Timeout as exc:
            raise CourierTimeoutError(f"Courier request timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise CourierApiError(f"Courier request failed: {type(exc).__name__}") from exc
