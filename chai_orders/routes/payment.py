"""Easebuzz payment routes."""

from __future__ import annotations

from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request

from ..errors import PersistenceError, ValidationError
from ..models.checkout import CheckoutInput
from ..services.logging import log_event
from ..utils.validators import validate_email
from . import request_payload


payment_bp = Blueprint("payment", __name__, url_prefix="/api/payment")


def _components() -> dict:
    return current_app.extensions["chai_orders_components"]


def _config():
    return current_app.config["CHAI_ORDERS_CONFIG"]


def _frontend(path: str, **params) -> str:
    query = urlencode({k: v or "" for k, v in params.items()})
    return f"{_config().frontend_url}{path}" + (f"?{query}" if query else "")


@payment_bp.post("/initiate")
def initiate_payment():
    payload = request_payload()
    checkout = CheckoutInput.from_payload(payload, require_email=True)
    checkout.customer_email = validate_email(checkout.customer_email)

    callback_url = _config().payment_callback_url
    result = _components()["order_service"].checkout_online(
        checkout, success_url=callback_url, failure_url=callback_url
    )

    data = {"order_number": result.order.order_number}
    data.update(result.payment or {})
    if result.integration_error:
        data["integration_error"] = result.integration_error
        return jsonify({"success": True, "message": "Order created, payment could not be initiated", "data": data})
    return jsonify({"success": True, "message": "Payment initiated successfully", "data": data})


# Easebuzz posts server-to-server or redirects the browser with a GET
@payment_bp.route("/callback", methods=["GET", "POST"])
def payment_callback():
    payload = request.form.to_dict() if request.method == "POST" else request.args.to_dict()
    try:
        result = _components()["payment_service"].verify_callback(payload)
    except PersistenceError:
        log_event("error", "payment.callback_failed", txnid=payload.get("txnid"))
        return redirect(_frontend("/payment/failure", error="callback_failed"))

    target = "/payment/success" if result.succeeded else "/payment/failure"
    return redirect(_frontend(target, order=result.order_number, txn=result.txnid))


@payment_bp.get("/status/<txnid>")
def payment_status(txnid: str):
    return jsonify({"success": True, "data": _components()["payment_service"].get_transaction_status(txnid)})


@payment_bp.post("/verify")
def verify_payment():
    payload = request_payload(form_fallback=False)
    txnid = str(payload.get("txnid", "")).strip()
    if not txnid:
        raise ValidationError("Transaction ID is required")
    return jsonify({"success": True, "data": _components()["payment_service"].verify_transaction(txnid)})
