"""Courier API bearer tokens, cached in the database."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..db.session import get_session
from ..errors import TokenAcquisitionError
from ..models.courier_token import CourierToken
from .logging import log_event


# provider issues 10-day tokens; refresh a day early
TOKEN_LIFETIME = timedelta(days=9)


class TokenProvider:
    """Hands out a bearer token for the courier API."""

    def get_valid_token(self) -> str:
        raise NotImplementedError

    def invalidate(self, token: str) -> None:
        raise NotImplementedError


class DbTokenProvider(TokenProvider):
    """Newest unexpired token in ``courier_tokens`` wins; otherwise log in.

    Concurrent refreshes are fine: each request may insert its own row and
    readers always pick the most recent one.
    """

    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        password: str,
        session_factory=get_session,
        timeout: float = 15,
        retries: int = 2,
        retry_delay: float = 1.0,
        lifetime: timedelta = TOKEN_LIFETIME,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._credentials = {"email": email, "password": password}
        self._session_factory = session_factory
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.lifetime = lifetime
        self._clock = clock
        self.logger = logging.getLogger(__name__)

    def get_valid_token(self) -> str:
        cached = self._current_token()
        if cached:
            return cached

        token = self._login()
        now = self._clock()
        try:
            with self._session_factory() as session:
                session.add(CourierToken(token=token, expires_at=now + self.lifetime, created_at=now))
                purged = session.execute(delete(CourierToken).where(CourierToken.expires_at <= now)).rowcount
        except SQLAlchemyError as exc:
            raise TokenAcquisitionError("Could not store courier token") from exc

        log_event("info", "courier.token_refreshed", expires_at=(now + self.lifetime).isoformat(), purged=purged)
        return token

    def invalidate(self, token: str) -> None:
        try:
            with self._session_factory() as session:
                session.execute(delete(CourierToken).where(CourierToken.token == token))
        except SQLAlchemyError:
            self.logger.exception("could not drop rejected courier token")

    def _current_token(self) -> Optional[str]:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(CourierToken)
                    .where(CourierToken.expires_at > self._clock())
                    .order_by(CourierToken.created_at.desc(), CourierToken.id.desc())
                    .limit(1)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise TokenAcquisitionError("Could not read courier token cache") from exc
        return row.token if row else None

    def _login(self) -> str:
        url = f"{self.base_url}/auth/login"
        last_error = "no attempt made"
        for attempt in range(1, self.retries + 2):
            try:
                response = requests.post(url, json=self._credentials, timeout=self.timeout)
            except requests.exceptions.RequestException as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                self.logger.warning("courier login attempt %s failed: %s", attempt, last_error)
            else:
                if response.status_code == 200:
                    try:
                        token = (response.json() or {}).get("token")
                    except ValueError:
                        token = None
                    if token:
                        return token
                    last_error = "login response carried no token"
                elif response.status_code < 500:
                    # bad credentials will not fix themselves
                    raise TokenAcquisitionError(f"Courier login rejected: HTTP {response.status_code}")
                else:
                    last_error = f"HTTP {response.status_code}"
                self.logger.warning("courier login attempt %s failed: %s", attempt, last_error)
            if attempt <= self.retries and self.retry_delay:
                time.sleep(self.retry_delay)
        raise TokenAcquisitionError(f"Courier login failed: {last_error}")
