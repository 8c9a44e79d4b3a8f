"""
Easebuzz payment gateway adapter.

Request hash:  sha512(key|txnid|amount|productinfo|firstname|email|udf1..udf10|salt)
Response hash: sha512(salt|status|udf10..udf1|email|firstname|productinfo|amount|txnid|key)

Both sequences are the gateway's wire contract and must stay byte-for-byte.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

import requests

from ..errors import InvalidSignatureError, NotFoundError
from ..utils.dto import to_transaction_dto
from .logging import log_event
from .order_store import OrderStore


UDF_FIELDS = tuple(f"udf{i}" for i in range(1, 11))
REQUEST_HASH_FIELDS = ("key", "txnid", "amount", "productinfo", "firstname", "email") + UDF_FIELDS
RESPONSE_HASH_FIELDS = ("status",) + tuple(reversed(UDF_FIELDS)) + ("email", "firstname", "productinfo", "amount", "txnid")

_BASE36 = string.digits + string.ascii_lowercase


def map_gateway_status(status: Optional[str]) -> Tuple[str, str]:
    """Gateway status -> (order status, payment status)."""
    if status == "success":
        return "confirmed", "completed"
    if status == "failure":
        return "cancelled", "failed"
    return "pending", "pending"


def sanitize_name(value: Optional[str]) -> str:
    return re.sub(r"[^a-zA-Z0-9\s]", "", value or "Customer").strip() or "Customer"


def sanitize_product(value: Optional[str]) -> str:
    return re.sub(r"[^a-zA-Z0-9\s\-.]", "", value or "Graduate Chai Product").strip() or "Graduate Chai Product"


def _sha512(text: str) -> str:
    return hashlib.sha512(text.encode("utf-8")).hexdigest()


@dataclass
class CallbackResult:
    status: str
    order_number: str
    txnid: str
    order_updated: bool
    transaction_updated: bool

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class EasebuzzService:
    """Signs payment requests and verifies gateway callbacks."""

    def __init__(
        self,
        *,
        key: str,
        salt: str,
        base_url: str,
        store: OrderStore,
        timeout: float = 15,
    ) -> None:
        self.key = key
        self.salt = salt
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.store = store
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    # -- signing ----------------------------------------------------------

    def generate_hash(self, params: Mapping[str, Any]) -> str:
        values = [str(params.get(name) or "") for name in REQUEST_HASH_FIELDS]
        return _sha512("|".join(values + [self.salt]))

    def response_hash(self, payload: Mapping[str, Any]) -> str:
        values = [str(payload.get(name) or "") for name in RESPONSE_HASH_FIELDS]
        # always the merchant key, never the one echoed in the payload
        return _sha512("|".join([self.salt] + values + [self.key]))

    def verify_hash(self, payload: Mapping[str, Any]) -> bool:
        supplied = str(payload.get("hash") or "")
        if not supplied:
            return False
        if payload.get("key") not in (None, "", self.key):
            return False
        return hmac.compare_digest(self.response_hash(payload).encode("utf-8"), supplied.encode("utf-8"))

    def generate_status_hash(self, txnid: str) -> str:
        return _sha512(f"{self.key}|{txnid}|{self.salt}")

    @staticmethod
    def generate_txn_id() -> str:
        random_part = "".join(secrets.choice(_BASE36) for _ in range(9))
        return f"TXN{int(time.time() * 1000)}{random_part}".upper()

    # -- urls -------------------------------------------------------------

    @property
    def initiate_url(self) -> str:
        return f"{self.base_url}payment/initiateLink"

    @property
    def pay_url(self) -> str:
        return f"{self.base_url}pay"

    @property
    def status_url(self) -> str:
        return f"{self.base_url}transaction/v2.1/retrieve"

    # -- operations -------------------------------------------------------

    def prepare_payment_params(
        self, order: Any, *, txnid: str, email: str, success_url: str, failure_url: str
    ) -> Dict[str, str]:
        items = order.items if isinstance(order.items, list) else []
        first_item = items[0] if items and isinstance(items[0], dict) else {}
        params = {
            "key": self.key,
            "txnid": txnid,
            "amount": f"{Decimal(str(order.total_amount)):.2f}",
            "productinfo": sanitize_product(first_item.get("name")),
            "firstname": sanitize_name(order.customer_name),
            "email": email,
            "phone": order.customer_phone or "",
            "surl": success_url,
            "furl": failure_url,
        }
        params.update({name: "" for name in UDF_FIELDS})
        # the callback links back to the order only through these
        params["udf1"] = order.order_number
        params["udf2"] = order.customer_phone or ""
        params["hash"] = self.generate_hash(params)
        return params

    def initiate_payment(self, order: Any, *, email: str, success_url: str, failure_url: str) -> Dict[str, Any]:
        txn = self.store.insert_transaction(
            order_id=order.id, amount=order.total_amount, id_factory=self.generate_txn_id
        )
        params = self.prepare_payment_params(
            order, txnid=txn.transaction_id, email=email, success_url=success_url, failure_url=failure_url
        )
        log_event("info", "payment.initiated", order_number=order.order_number, txnid=txn.transaction_id, amount=params["amount"])

        result = {"order_number": order.order_number, "transaction_id": txn.transaction_id}
        access_key = self._request_access_key(params)
        if access_key:
            result.update({"payment_url": self.pay_url, "access_key": access_key, "data": access_key})
        else:
            # gateway unreachable: let the browser post the signed form itself
            result.update({"payment_url": self.initiate_url, "payment_params": params})
        return result

    def _request_access_key(self, params: Dict[str, str]) -> Optional[str]:
        try:
            response = requests.post(
                self.initiate_url,
                data=params,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            self.logger.warning("easebuzz initiateLink failed: %s", type(exc).__name__)
            return None
        if isinstance(body, dict) and body.get("status") == 1 and body.get("data"):
            return str(body["data"])
        error = body.get("error_desc") if isinstance(body, dict) else None
        self.logger.warning("easebuzz initiateLink rejected: %s", error or "unknown error")
        return None

    def verify_callback(self, payload: Mapping[str, Any]) -> CallbackResult:
        """Verify and apply a gateway callback. Safe to call repeatedly."""
        data = {k: (v if isinstance(v, str) else str(v)) for k, v in dict(payload).items() if v is not None}
        txnid = data.get("txnid", "")
        if not self.verify_hash(data):
            log_event("warning", "payment.callback_rejected", txnid=txnid)
            raise InvalidSignatureError()

        status = data.get("status", "")
        order_number = data.get("udf1", "")
        order_status, payment_status = map_gateway_status(status)

        order_updated = txn_updated = False
        if payment_status != "pending":
            order_updated = self.store.transition_payment(
                order_number, status=order_status, payment_status=payment_status
            )
            txn_updated = self.store.settle_transaction(
                txnid,
                status=payment_status,
                gateway_transaction_id=data.get("easepayid"),
                gateway_response={k: v for k, v in data.items() if k != "hash"},
            )

        log_event(
            "info",
            "payment.callback_applied",
            txnid=txnid,
            order_number=order_number,
            gateway_status=status,
            order_updated=order_updated,
            transaction_updated=txn_updated,
        )
        return CallbackResult(
            status=status,
            order_number=order_number,
            txnid=txnid,
            order_updated=order_updated,
            transaction_updated=txn_updated,
        )

    def get_transaction_status(self, txnid: str) -> Dict[str, Any]:
        txn, order = self.store.get_transaction_with_order(txnid)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return to_transaction_dto(txn, order)

    def verify_transaction(self, txnid: str) -> Dict[str, Any]:
        """Local record plus the gateway's own view of the transaction.

        The gateway answer is reported, not applied; only signed callbacks
        move an order.
        """
        txn = self.store.get_transaction(txnid)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return {
            "transaction_id": txn.transaction_id,
            "status": txn.status,
            "amount": float(txn.amount),
            "gateway_response": txn.gateway_response,
            "gateway_status": self._retrieve(txnid),
        }

    def _retrieve(self, txnid: str) -> Optional[Dict[str, Any]]:
        data = {"key": self.key, "txnid": txnid, "hash": self.generate_status_hash(txnid)}
        try:
            response = requests.post(
                self.status_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            self.logger.warning("easebuzz retrieve failed: %s", type(exc).__name__)
            return None
        return body if isinstance(body, dict) else None
