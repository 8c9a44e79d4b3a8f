"""Persistence for orders and payment transactions.

All writes go through explicit allow-lists. Uniqueness of order numbers and
transaction ids is left to the unique constraints; callers hand in a
generator and a colliding insert is retried with a fresh value.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db.session import get_session
from ..errors import PersistenceError
from ..models.order import Order
from ..models.payment_transaction import PaymentTransaction


logger = logging.getLogger(__name__)

MAX_UNIQUE_ATTEMPTS = 5

TERMINAL_ORDER_STATUSES = ("completed", "cancelled")


def _optional_str(value) -> Optional[str]:
    return None if value in (None, "") else str(value)


ORDER_FIELD_SETTERS: Dict[str, Callable] = {
    "status": str,
    "payment_status": str,
    "special_instructions": _optional_str,
    "courier_order_id": _optional_str,
    "shipment_id": _optional_str,
    "courier_name": _optional_str,
    "awb_code": _optional_str,
    "tracking_status": _optional_str,
}

TRANSACTION_FIELD_SETTERS: Dict[str, Callable] = {
    "status": str,
    "gateway_transaction_id": _optional_str,
    "gateway_response": dict,
}


def _violates_unique(exc: IntegrityError, column: str) -> bool:
    # sqlite: "UNIQUE constraint failed: orders.order_number"
    # postgres: duplicate key value violates unique constraint "orders_order_number_key"
    message = str(exc.orig).lower()
    return ("unique" in message or "duplicate" in message) and column in message


def _coerce(values: Dict, setters: Dict[str, Callable]) -> Dict:
    unknown = set(values) - set(setters)
    if unknown:
        raise ValueError(f"fields not updatable: {', '.join(sorted(unknown))}")
    return {k: setters[k](v) if v is not None else None for k, v in values.items()}


class OrderStore:
    """Order and PaymentTransaction rows backed by SQLAlchemy."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    @contextmanager
    def _unit(self):
        try:
            with self._session_factory() as session:
                yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("order store failure")
            raise PersistenceError() from exc

    def _insert_unique(self, build: Callable[[], object], unique_column: str):
        last_error = None
        for attempt in range(1, MAX_UNIQUE_ATTEMPTS + 1):
            row = build()
            try:
                with self._unit() as session:
                    session.add(row)
                    session.flush()
                    session.refresh(row)
                return row
            except IntegrityError as exc:
                if not _violates_unique(exc, unique_column):
                    logger.error("insert of %s rejected: %s", type(row).__name__, exc.orig)
                    raise PersistenceError() from exc
                last_error = exc
                logger.warning("unique key collision on %s (attempt %s)", type(row).__name__, attempt)
        raise PersistenceError("Could not allocate a unique identifier") from last_error

    # -- orders -----------------------------------------------------------

    def insert_order(self, *, number_factory: Callable[[], str], **values) -> Order:
        return self._insert_unique(lambda: Order(order_number=number_factory(), **values), "order_number")

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._unit() as session:
            return session.get(Order, order_id)

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        if not order_number:
            return None
        with self._unit() as session:
            return session.execute(
                select(Order).where(Order.order_number == order_number)
            ).scalar_one_or_none()

    def list_orders(self, *, limit: int = 200, offset: int = 0) -> List[Order]:
        with self._unit() as session:
            return list(
                session.execute(
                    select(Order).order_by(Order.order_date.desc(), Order.id.desc()).offset(offset).limit(limit)
                ).scalars()
            )

    def summary(self) -> Dict:
        with self._unit() as session:
            row = session.execute(
                select(
                    func.count(Order.id),
                    func.coalesce(func.sum(Order.total_amount), 0),
                    func.sum(case((Order.status == "pending", 1), else_=0)),
                    func.sum(case((Order.status == "completed", 1), else_=0)),
                )
            ).one()
        return {
            "total_orders": int(row[0] or 0),
            "revenue": float(Decimal(str(row[1] or 0))),
            "pending_orders": int(row[2] or 0),
            "delivered_orders": int(row[3] or 0),
        }

    def delete_order_by_number(self, order_number: str) -> bool:
        with self._unit() as session:
            order = session.execute(
                select(Order).where(Order.order_number == order_number)
            ).scalar_one_or_none()
            if order is None:
                return False
            session.execute(
                PaymentTransaction.__table__.delete().where(PaymentTransaction.order_id == order.id)
            )
            session.delete(order)
            return True

    def update_order(self, order_id: int, **values) -> Optional[Order]:
        fields = _coerce(values, ORDER_FIELD_SETTERS)
        with self._unit() as session:
            session.execute(update(Order).where(Order.id == order_id).values(**fields))
            return session.get(Order, order_id)

    def set_courier_fields(self, order_id: int, **values) -> bool:
        """Write shipping fields only while no courier order id is recorded."""
        fields = _coerce(values, ORDER_FIELD_SETTERS)
        with self._unit() as session:
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.courier_order_id.is_(None))
                .values(**fields)
            )
            return result.rowcount == 1

    def transition_payment(self, order_number: str, *, status: str, payment_status: str) -> bool:
        """Move a pending, non-terminal order to its payment outcome."""
        with self._unit() as session:
            result = session.execute(
                update(Order)
                .where(
                    Order.order_number == order_number,
                    Order.payment_status == "pending",
                    Order.status.notin_(TERMINAL_ORDER_STATUSES),
                )
                .values(status=status, payment_status=payment_status)
            )
            return result.rowcount == 1

    # -- payment transactions ----------------------------------------------

    def insert_transaction(
        self, *, order_id: int, amount: Decimal, id_factory: Callable[[], str], gateway: str = "easebuzz"
    ) -> PaymentTransaction:
        return self._insert_unique(
            lambda: PaymentTransaction(
                order_id=order_id,
                transaction_id=id_factory(),
                amount=amount,
                status="initiated",
                payment_gateway=gateway,
            ),
            "transaction_id",
        )

    def get_transaction(self, transaction_id: str) -> Optional[PaymentTransaction]:
        with self._unit() as session:
            return session.execute(
                select(PaymentTransaction).where(PaymentTransaction.transaction_id == transaction_id)
            ).scalar_one_or_none()

    def get_transaction_with_order(self, transaction_id: str) -> Tuple[Optional[PaymentTransaction], Optional[Order]]:
        with self._unit() as session:
            row = session.execute(
                select(PaymentTransaction, Order)
                .join(Order, PaymentTransaction.order_id == Order.id)
                .where(PaymentTransaction.transaction_id == transaction_id)
            ).first()
            if row is None:
                return None, None
            return row[0], row[1]

    def settle_transaction(self, transaction_id: str, **values) -> bool:
        """Record the gateway outcome once; later calls leave the row alone."""
        fields = _coerce(values, TRANSACTION_FIELD_SETTERS)
        with self._unit() as session:
            result = session.execute(
                update(PaymentTransaction)
                .where(
                    PaymentTransaction.transaction_id == transaction_id,
                    PaymentTransaction.status == "initiated",
                )
                .values(**fields)
            )
            return result.rowcount == 1
