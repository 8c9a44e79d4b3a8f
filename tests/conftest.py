"""
Shared fixtures: a throwaway SQLite database per test plus a configured app.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest

from chai_orders.config import AppConfig
from chai_orders.db.session import build_engine, create_session_factory
from chai_orders.models import Base
from chai_orders.services.order_store import OrderStore


CHECKOUT_PAYLOAD = {
    "name": "Asha Patil",
    "phone": "9876543210",
    "email": "asha@example.com",
    "street": "12 Station Road",
    "city": "Shirdi",
    "taluka": "Rahata",
    "district": "Ahmednagar",
    "pincode": "423109",
    "landmark": "Near temple",
    "product": "Gulacha Chaha 500g",
    "price": "500",
    "qty": "2",
    "weight": "500g",
    "payment": "cod",
    "image": "https://cdn.example.com/chai.jpg",
}


@pytest.fixture
def checkout_payload():
    return dict(CHECKOUT_PAYLOAD)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return OrderStore(session_factory)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        secret_key="test-secret",
        jwt_secret="test-jwt-secret",
        jwt_expires_hours=1,
        log_level="WARNING",
        frontend_url="http://shop.test",
        backend_public_url="http://api.test",
        payment_env="test",
        easebuzz_key="TESTKEY",
        easebuzz_salt="TESTSALT",
        easebuzz_base_url="https://testpay.easebuzz.in/",
        shiprocket_base_url="https://courier.test/v1/external",
        shiprocket_email="ops@example.com",
        shiprocket_password="pw",
        shiprocket_channel_id=8207072,
        http_timeout_seconds=5,
    )


@pytest.fixture
def app(app_config):
    from chai_orders.app import create_app

    flask_app = create_app(app_config)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def components(app):
    return app.extensions["chai_orders_components"]
