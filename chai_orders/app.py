"""Flask application for the chai storefront order backend."""

from __future__ import annotations

import logging
from typing import Optional

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import AppConfig, load_env
from .db.session import build_engine, create_session_factory
from .errors import OrderSystemError, ValidationError
from .models import Base
from .routes import auth, orders, payment
from .services import (
    AuthService,
    DbTokenProvider,
    EasebuzzService,
    OrderService,
    OrderStore,
    ShiprocketService,
)


logger = logging.getLogger(__name__)


def build_components(config: AppConfig, session_factory) -> dict:
    store = OrderStore(session_factory)
    token_provider = DbTokenProvider(
        base_url=config.shiprocket_base_url,
        email=config.shiprocket_email,
        password=config.shiprocket_password,
        session_factory=session_factory,
        timeout=config.http_timeout_seconds,
    )
    courier = ShiprocketService(
        token_provider,
        base_url=config.shiprocket_base_url,
        channel_id=config.shiprocket_channel_id,
        timeout=config.http_timeout_seconds + 5,
    )
    payments = EasebuzzService(
        key=config.easebuzz_key,
        salt=config.easebuzz_salt,
        base_url=config.easebuzz_base_url,
        store=store,
        timeout=config.http_timeout_seconds,
    )
    return {
        "order_store": store,
        "token_provider": token_provider,
        "courier": courier,
        "payment_service": payments,
        "order_service": OrderService(store, courier=courier, payments=payments),
        "auth_service": AuthService(
            jwt_secret=config.jwt_secret,
            expires_hours=config.jwt_expires_hours,
            session_factory=session_factory,
        ),
    }


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(OrderSystemError)
    def handle_order_error(exc: OrderSystemError):
        body = {"success": False, "message": exc.message}
        if isinstance(exc, ValidationError) and exc.fields:
            body["errors"] = exc.fields
        return jsonify(body), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("unhandled error")
        return jsonify({"success": False, "message": "Internal server error"}), 500


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create database tables."""
        Base.metadata.create_all(bind=app.extensions["chai_orders_engine"])
        click.echo("Database tables initialized")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default="", help="Display name")
    def create_admin(email: str, password: str, name: str):
        """Create an admin account with a salted password hash."""
        admin = app.extensions["chai_orders_components"]["auth_service"].create_admin(email, password, name)
        click.echo(f"Admin {admin['email']} created (id={admin['id']})")


def create_app(config: Optional[AppConfig] = None) -> Flask:
    config = config or load_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["CHAI_ORDERS_CONFIG"] = config

    engine = build_engine(config.database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = create_session_factory(engine)
    app.extensions["chai_orders_engine"] = engine
    app.extensions["chai_orders_components"] = build_components(config, session_factory)

    app.register_blueprint(auth.auth_bp)
    app.register_blueprint(orders.orders_bp)
    app.register_blueprint(payment.payment_bp)
    _register_error_handlers(app)
    _register_cli(app)

    @app.get("/health")
    def health():
        data = {"payment_env": config.payment_env, "live_payments": config.is_production_payment}
        return jsonify({"success": True, "message": "ok", "data": data})

    logger.info("chai-orders configured: %s", config.describe())
    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=5001, debug=False)


if __name__ == "__main__":
    main()
