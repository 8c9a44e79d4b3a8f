"""Application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv


SENSITIVE_FIELDS = {"secret_key", "jwt_secret", "easebuzz_salt", "shiprocket_password"}


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    jwt_secret: str
    jwt_expires_hours: int
    log_level: str
    frontend_url: str
    backend_public_url: str
    payment_env: str
    easebuzz_key: str
    easebuzz_salt: str
    easebuzz_base_url: str
    shiprocket_base_url: str
    shiprocket_email: str
    shiprocket_password: str
    shiprocket_channel_id: int
    http_timeout_seconds: float

    @property
    def is_production_payment(self) -> bool:
        return self.payment_env == "production"

    @property
    def payment_callback_url(self) -> str:
        return f"{self.backend_public_url.rstrip('/')}/api/payment/callback"

    def describe(self) -> Dict[str, str]:
        """Config values safe for logging."""
        out = {}
        for key, value in vars(self).items():
            if key in SENSITIVE_FIELDS:
                out[key] = "***" if value else ""
            else:
                out[key] = str(value)
        return out


def _load_settings_file(path: Optional[Path] = None) -> dict:
    target = path or Path.cwd() / "data" / "settings.json"
    if not target.exists():
        return {}
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def load_env(settings_path: Optional[Path] = None) -> AppConfig:
    # data/settings.json wins over the environment; .env only fills gaps
    load_dotenv(Path.cwd() / ".env")
    s = _load_settings_file(settings_path)

    def get(key: str, default: str = "") -> str:
        value = s.get(key)
        if value in (None, ""):
            value = os.getenv(key, default)
        return str(value)

    payment_env = get("PAYMENT_ENV", "test").strip().lower()
    prefix = "EASEBUZZ_PROD" if payment_env == "production" else "EASEBUZZ_TEST"
    default_gateway = "https://pay.easebuzz.in/" if payment_env == "production" else "https://testpay.easebuzz.in/"
    secret_key = get("SECRET_KEY", "dev_secret")

    return AppConfig(
        database_url=get("DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=secret_key,
        jwt_secret=get("JWT_SECRET", secret_key),
        jwt_expires_hours=int(get("JWT_EXPIRES_HOURS", "24")),
        log_level=get("LOG_LEVEL", "INFO").upper(),
        frontend_url=get("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        backend_public_url=get("BACKEND_PUBLIC_URL", f"http://localhost:{get('PORT', '5001')}").rstrip("/"),
        payment_env=payment_env,
        easebuzz_key=get(f"{prefix}_KEY"),
        easebuzz_salt=get(f"{prefix}_SALT"),
        easebuzz_base_url=get(f"{prefix}_URL", default_gateway),
        shiprocket_base_url=get("SHIPROCKET_BASE_URL", "https://apiv2.shiprocket.in/v1/external").rstrip("/"),
        shiprocket_email=get("SHIPROCKET_EMAIL"),
        shiprocket_password=get("SHIPROCKET_PASSWORD"),
        shiprocket_channel_id=int(get("SHIPROCKET_CHANNEL_ID", "8207072")),
        http_timeout_seconds=float(get("HTTP_TIMEOUT_SECONDS", "15")),
    )
