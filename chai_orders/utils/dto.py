from typing import Any, Dict

from ..models.checkout import DeliveryAddress, LineItem


def _money(value) -> float:
    return float(value or 0)


def _iso(value) -> Any:
    return value.isoformat() if value is not None else None


def to_order_dto(row: Any) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "order_number": getattr(row, "order_number", None),
        "customer_name": getattr(row, "customer_name", None),
        "customer_phone": getattr(row, "customer_phone", None),
        "items": [i.to_dict() for i in (LineItem.from_dict(x) for x in (getattr(row, "items", None) or [])) if i],
        "subtotal": _money(getattr(row, "subtotal", 0)),
        "tax_amount": _money(getattr(row, "tax_amount", 0)),
        "discount_amount": _money(getattr(row, "discount_amount", 0)),
        "total_amount": _money(getattr(row, "total_amount", 0)),
        "status": getattr(row, "status", None),
        "payment_status": getattr(row, "payment_status", None),
        "payment_method": getattr(row, "payment_method", None),
        "delivery_address": DeliveryAddress.from_dict(getattr(row, "delivery_address", None)).to_dict(),
        "special_instructions": getattr(row, "special_instructions", None),
        "courier_order_id": getattr(row, "courier_order_id", None),
        "shipment_id": getattr(row, "shipment_id", None),
        "courier_name": getattr(row, "courier_name", None),
        "awb_code": getattr(row, "awb_code", None),
        "tracking_status": getattr(row, "tracking_status", None),
        "order_date": _iso(getattr(row, "order_date", None)),
    }


def to_admin_row(row: Any) -> Dict:
    """Flatten an order to the first item for the admin table."""
    items = [i for i in (LineItem.from_dict(x) for x in (getattr(row, "items", None) or [])) if i]
    first = items[0] if items else None
    address = DeliveryAddress.from_dict(getattr(row, "delivery_address", None))
    method = getattr(row, "payment_method", None) or ""
    order_date = getattr(row, "order_date", None)
    return {
        "id": row.order_number,
        "customer": row.customer_name,
        "mobile": row.customer_phone,
        "address": address.one_line(),
        "product": first.name if first else "Item",
        "quantity": first.quantity if first else 1,
        "weight": first.weight if first else None,
        "price": _money(first.price) if first else 0.0,
        "total": _money(row.total_amount),
        "payment": "COD" if method == "cash" else method.upper(),
        "status": (row.status or "pending").title(),
        "date": order_date.strftime("%Y-%m-%d") if order_date else "",
        "image1": first.images[0] if first and first.images else None,
        "image2": first.images[1] if first and len(first.images) > 1 else None,
    }


def to_transaction_dto(txn: Any, order: Any = None) -> Dict:
    data = {
        "transaction_id": txn.transaction_id,
        "amount": _money(txn.amount),
        "status": txn.status,
        "created_at": _iso(txn.created_at),
    }
    if order is not None:
        data["order_number"] = order.order_number
        data["order_status"] = order.status
    return data
