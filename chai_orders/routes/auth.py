"""Admin authentication routes and the bearer-token guard."""

from __future__ import annotations

from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import AuthenticationError, ValidationError
from . import request_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _components() -> dict:
    return current_app.extensions["chai_orders_components"]


def require_admin(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        token = header[7:].strip() if header.startswith("Bearer ") else ""
        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        g.admin = _components()["auth_service"].verify_token(token)
        return view(*args, **kwargs)

    return wrapper


@auth_bp.post("/login")
def login():
    payload = request_payload(form_fallback=False)
    email = str(payload.get("email", "")).strip()
    password = str(payload.get("password", ""))
    if not email or not password:
        raise ValidationError("Invalid input data")
    result = _components()["auth_service"].login(email, password)
    return jsonify({"success": True, "message": "Login successful", "data": result})


@auth_bp.get("/me")
@require_admin
def me():
    return jsonify({"success": True, "data": g.admin})
