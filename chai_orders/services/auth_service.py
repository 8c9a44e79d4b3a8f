"""Admin login and bearer-token checks."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..db.session import get_session
from ..errors import AccountLockedError, AuthenticationError, PersistenceError, ValidationError
from ..models.admin import Admin
from .logging import log_event


MAX_FAILED_ATTEMPTS = 5
LOCK_DURATION = timedelta(minutes=30)


def _admin_dto(admin: Admin) -> Dict[str, Any]:
    return {"id": admin.id, "email": admin.email, "name": admin.name, "role": admin.role}


class AuthService:
    """Salted password hashes in ``admins``; HS256 JWTs for API access."""

    def __init__(self, *, jwt_secret: str, expires_hours: int = 24, session_factory=get_session) -> None:
        self._secret = jwt_secret
        self.expires = timedelta(hours=expires_hours)
        self._session_factory = session_factory
        self.logger = logging.getLogger(__name__)

    def create_admin(self, email: str, password: str, name: str = "") -> Dict[str, Any]:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("email and password are required")
        admin = Admin(email=email, name=name or None, password_hash=generate_password_hash(password))
        try:
            with self._session_factory() as session:
                session.add(admin)
                session.flush()
                return _admin_dto(admin)
        except IntegrityError:
            raise ValidationError(f"Admin {email} already exists")
        except SQLAlchemyError as exc:
            raise PersistenceError() from exc

    def login(self, email: str, password: str) -> Dict[str, Any]:
        email = (email or "").strip().lower()
        now = datetime.utcnow()
        with self._session_factory() as session:
            admin = session.execute(
                select(Admin).where(Admin.email == email, Admin.is_active.is_(True))
            ).scalar_one_or_none()
            if admin is None:
                raise AuthenticationError()
            if admin.locked_until and now < admin.locked_until:
                raise AccountLockedError()

            if not check_password_hash(admin.password_hash, password or ""):
                admin.login_attempts = (admin.login_attempts or 0) + 1
                if admin.login_attempts >= MAX_FAILED_ATTEMPTS:
                    admin.locked_until = now + LOCK_DURATION
                log_event("warning", "admin.login_failed", admin_id=admin.id, attempts=admin.login_attempts)
                # commit the counter before refusing
                session.commit()
                raise AuthenticationError()

            admin.login_attempts = 0
            admin.locked_until = None
            admin.last_login = now
            profile = _admin_dto(admin)

        token = jwt.encode(
            {
                "sub": str(profile["id"]),
                "email": profile["email"],
                "role": profile["role"],
                "iat": datetime.now(timezone.utc),
                "exp": datetime.now(timezone.utc) + self.expires,
            },
            self._secret,
            algorithm="HS256",
        )
        log_event("info", "admin.login", admin_id=profile["id"])
        return {"token": token, "admin": profile}

    def verify_token(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, self._secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired.")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token.")

        with self._session_factory() as session:
            admin = session.get(Admin, int(claims.get("sub", 0)))
            if admin is None or not admin.is_active:
                raise AuthenticationError("Invalid token or admin account deactivated.")
            return _admin_dto(admin)
