"""
Tests for order creation and the courier side of the lifecycle.
"""

import re
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from chai_orders.errors import (
    AlreadyRegisteredError,
    AlreadyShippedError,
    CourierApiError,
    CourierTimeoutError,
    NoShipmentError,
    NotFoundError,
    PersistenceError,
    TokenAcquisitionError,
    ValidationError,
)
from chai_orders.models.checkout import CheckoutInput
from chai_orders.services.order_service import OrderService, generate_order_number


def make_courier(order_id=555, **extra):
    courier = MagicMock()
    courier.transform_order.return_value = {"order_id": "GG-ORDER-1"}
    courier.create_order.return_value = {"order_id": order_id, **extra}
    return courier


@pytest.fixture
def checkout(checkout_payload):
    return CheckoutInput.from_payload(checkout_payload)


class TestCreateOrder:
    def test_totals_and_initial_statuses(self, store, checkout):
        order = OrderService(store).create_order(checkout)

        assert re.fullmatch(r"ORD\d+", order.order_number)
        assert order.subtotal == Decimal("1000.00")
        assert order.total_amount == Decimal("1000.00")
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.payment_method == "cash"
        assert order.items[0]["quantity"] == 2
        assert order.delivery_address["city"] == "Shirdi"

    def test_missing_fields_are_listed(self, checkout_payload):
        del checkout_payload["city"]
        checkout_payload["pincode"] = "  "
        with pytest.raises(ValidationError) as info:
            CheckoutInput.from_payload(checkout_payload)
        assert info.value.fields == ["city", "pincode"]
        assert info.value.status_code == 400

    @pytest.mark.parametrize("price", ["0", "-5", "abc"])
    def test_bad_price_rejected(self, checkout_payload, price):
        checkout_payload["price"] = price
        with pytest.raises(ValidationError):
            CheckoutInput.from_payload(checkout_payload)

    def test_order_numbers_unique_under_concurrency(self, store, checkout):
        service = OrderService(store)
        numbers, errors = [], []

        def worker():
            try:
                numbers.append(service.create_order(checkout).order_number)
            except Exception as exc:  # pragma: no cover - surfaced by the assert below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(set(numbers)) == 8

    def test_colliding_number_is_regenerated(self, store, checkout):
        numbers = iter(["ORD1", "ORD1", "ORD2"])
        service = OrderService(store, number_factory=lambda: next(numbers))

        first = service.create_order(checkout)
        second = service.create_order(checkout)

        assert (first.order_number, second.order_number) == ("ORD1", "ORD2")

    def test_generated_number_shape(self):
        assert re.fullmatch(r"ORD\d{17}", generate_order_number())

    @pytest.mark.parametrize("qty", ["2.0", 2.0, 2])
    def test_whole_number_quantity_accepted(self, checkout_payload, qty):
        checkout_payload["qty"] = qty
        assert CheckoutInput.from_payload(checkout_payload).item.quantity == 2

    @pytest.mark.parametrize("qty", ["1.5", "0", "-1", "two", "NaN", "Infinity"])
    def test_bad_quantity_rejected(self, checkout_payload, qty):
        checkout_payload["qty"] = qty
        with pytest.raises(ValidationError):
            CheckoutInput.from_payload(checkout_payload)

    def test_other_integrity_errors_are_not_retried(self, store):
        calls = []

        def number():
            calls.append(1)
            return f"ORD{len(calls)}"

        # customer_name is NOT NULL
        with pytest.raises(PersistenceError) as info:
            store.insert_order(number_factory=number, customer_name=None, customer_phone="1",
                               items=[], subtotal=1, total_amount=1, delivery_address={})
        assert len(calls) == 1
        assert info.value.message != "Could not allocate a unique identifier"

    def test_exhausted_unique_retries(self, store, checkout):
        service = OrderService(store, number_factory=lambda: "ORDSAME")
        service.create_order(checkout)
        with pytest.raises(PersistenceError, match="unique identifier"):
            service.create_order(checkout)


class TestCourierRegistration:
    def test_checkout_registers_with_courier(self, store, checkout):
        courier = make_courier(order_id=777)
        result = OrderService(store, courier=courier).checkout(checkout)

        assert result.integration_error is None
        assert result.courier.courier_order_id == "777"
        assert store.get_order(result.order.id).courier_order_id == "777"

    @pytest.mark.parametrize(
        "error", [CourierApiError("boom", status=422), CourierTimeoutError(), TokenAcquisitionError()]
    )
    def test_courier_failure_keeps_order(self, store, checkout, error):
        courier = make_courier()
        courier.create_order.side_effect = error

        result = OrderService(store, courier=courier).checkout(checkout)

        assert result.integration_error == error.message
        stored = store.get_order(result.order.id)
        assert stored is not None
        assert stored.courier_order_id is None
        assert stored.status == "pending"

    def test_second_registration_refused(self, store, checkout):
        courier = make_courier()
        service = OrderService(store, courier=courier)
        order = service.checkout(checkout).order

        with pytest.raises(AlreadyRegisteredError):
            service.register_with_courier(store.get_order(order.id))
        assert courier.create_order.call_count == 1

    def test_lost_race_raises(self, store, checkout):
        service = OrderService(store, courier=make_courier(order_id=1))
        order = service.create_order(checkout)
        stale = store.get_order(order.id)
        store.set_courier_fields(order.id, courier_order_id="999")

        with pytest.raises(AlreadyRegisteredError):
            service.register_with_courier(stale)
        assert store.get_order(order.id).courier_order_id == "999"


class TestShipmentAndTracking:
    def test_create_shipment_records_fields(self, store, checkout):
        courier = make_courier()
        courier.create_shipment.return_value = {
            "order_id": 11,
            "shipment_id": 22,
            "awb_code": "AWB1",
            "courier_name": "Delhivery",
            "status": "NEW",
        }
        service = OrderService(store, courier=courier)
        order = service.create_order(checkout)

        result = service.create_shipment_for_order(order.id)

        assert result["order"].shipment_id == "22"
        assert result["order"].courier_order_id == "11"
        assert result["order"].awb_code == "AWB1"
        assert result["order"].tracking_status == "NEW"

    def test_shipment_refused_once_registered(self, store, checkout):
        service = OrderService(store, courier=make_courier())
        order = service.checkout(checkout).order

        with pytest.raises(AlreadyShippedError):
            service.create_shipment_for_order(order.id)

    def test_unknown_order(self, store):
        with pytest.raises(NotFoundError):
            OrderService(store, courier=make_courier()).create_shipment_for_order(404)

    def test_tracking_requires_shipment(self, store, checkout):
        service = OrderService(store, courier=make_courier())
        order = service.create_order(checkout)
        with pytest.raises(NoShipmentError):
            service.get_tracking(order.id)

    def test_tracking_updates_cached_status(self, store, checkout):
        courier = make_courier()
        courier.get_tracking_details.return_value = {
            "tracking_data": {"shipment_track": [{"current_status": "IN TRANSIT"}]}
        }
        service = OrderService(store, courier=courier)
        order = service.create_order(checkout)
        store.set_courier_fields(order.id, courier_order_id="1", shipment_id="2", tracking_status="NEW")

        data = service.get_tracking(order.id)

        courier.get_tracking_details.assert_called_once_with("2")
        assert data["tracking_status"] == "IN TRANSIT"
        assert store.get_order(order.id).tracking_status == "IN TRANSIT"


class TestAdminViews:
    def test_list_summary_and_delete(self, store, checkout):
        service = OrderService(store)
        first = service.create_order(checkout)
        service.create_order(checkout)
        store.update_order(first.id, status="completed")

        rows = service.list_orders()
        assert len(rows) == 2
        assert rows[0]["payment"] == "COD"
        assert rows[0]["image1"] == "https://cdn.example.com/chai.jpg"

        summary = service.summary()
        assert summary == {
            "total_orders": 2,
            "revenue": 2000.0,
            "pending_orders": 1,
            "delivered_orders": 1,
        }

        service.delete_order(first.order_number)
        assert store.get_order(first.id) is None
        with pytest.raises(NotFoundError):
            service.delete_order(first.order_number)

    def test_update_rejects_unknown_fields(self, store, checkout):
        order = OrderService(store).create_order(checkout)
        with pytest.raises(ValueError):
            store.update_order(order.id, total_amount=1)
