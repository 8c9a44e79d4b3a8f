import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Mapping, Tuple

from ..errors import ValidationError


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def missing_fields(payload: Mapping, required: Iterable[str]) -> List[str]:
    missing = []
    for key in required:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(key)
    return missing


def parse_price(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be > 0")
    return amount.quantize(Decimal("0.01"))


def parse_positive_int(value, field: str) -> int:
    """Accepts 2, "2", 2.0 and "2.0"; rejects fractions."""
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a whole number")
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError(f"{field} must be a whole number")
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return int(number)


def validate_email(value: str) -> str:
    email = (value or "").strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address.")
    return email


def normalize_paging(page: int, page_size: int, max_page_size: int = 200) -> Tuple[int, int]:
    p = page if page and page > 0 else 1
    ps = page_size if page_size and page_size > 0 else 50
    ps = min(ps, max_page_size)
    return p, ps
