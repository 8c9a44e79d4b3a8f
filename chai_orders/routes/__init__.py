"""HTTP routes."""

from flask import request

from ..errors import ValidationError


def request_payload(*, form_fallback: bool = True) -> dict:
    """JSON object body, else form fields; anything else is a 400."""
    payload = request.get_json(silent=True)
    if not payload:
        return request.form.to_dict() if form_fallback else {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
