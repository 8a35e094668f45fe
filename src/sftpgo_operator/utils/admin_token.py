"""
SFTPGo admin token handling.

SFTPGo's admin API is authenticated with short-lived bearer tokens obtained
by exchanging the admin username and password at the token endpoint. This
module caches one such token per client and refreshes it lazily:

- Callers ask for an ``Authorization`` header value before every request
- A cached token is served under a shared lock, so readers never block each other
- A stale token is refreshed under an exclusive lock, re-checked first so that
  concurrent callers never issue more than one refresh
- Tokens are treated as expired a safety margin before their reported expiry
"""

import asyncio
import base64
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pydantic import BaseModel, Field, field_validator

from sftpgo_operator.constants import TOKEN_SAFETY_MARGIN_SECONDS
from sftpgo_operator.observability.metrics import TOKEN_ISSUANCE_TOTAL

logger = logging.getLogger(__name__)


def create_basic_auth_header(username: str, password: str) -> str:
    """Build a ``Basic`` Authorization header value."""
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {credentials}"


def create_bearer_auth_header(access_token: str) -> str:
    """Build a ``Bearer`` Authorization header value."""
    return f"Bearer {access_token}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AdminAccessToken(BaseModel):
    """Response body of the SFTPGo token endpoint."""

    access_token: str = Field(..., min_length=1)
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class TokenIssuer(Protocol):
    """Anything that can exchange admin credentials for a short-lived token."""

    async def create_admin_access_token(
        self, username: str, password: str
    ) -> AdminAccessToken: ...


@dataclass(frozen=True)
class StoredAccessToken:
    """A cached token; ``expires_at`` already has the safety margin applied."""

    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now

    @property
    def header_value(self) -> str:
        return create_bearer_auth_header(self.access_token)


class ReadWriteLock:
    """
    Asyncio reader/writer lock.

    Any number of readers may hold the lock together; a writer holds it alone.
    Once a writer is waiting, new readers queue behind it so a pending refresh
    cannot be starved by a steady stream of readers.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._waiting_writers == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            finally:
                self._waiting_writers -= 1
                if self._waiting_writers == 0:
                    # Readers queued behind writers re-check their predicate
                    self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked_exclusive(self) -> bool:
        return self._writer


class TokenStore:
    """Holds at most one cached token behind a reader/writer lock."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._token: StoredAccessToken | None = None

    @asynccontextmanager
    async def read(self) -> AsyncIterator[StoredAccessToken | None]:
        """Shared access to the current token."""
        async with self._lock.read():
            yield self._token

    @asynccontextmanager
    async def write(self) -> AsyncIterator["TokenStore"]:
        """Exclusive access; only the holder may call ``replace``."""
        async with self._lock.write():
            yield self

    @property
    def current(self) -> StoredAccessToken | None:
        return self._token

    def replace(self, token: StoredAccessToken | None) -> None:
        if not self._lock.locked_exclusive:
            raise RuntimeError("TokenStore.replace() requires the exclusive lock")
        self._token = token


class RefreshableAdminAuthContext:
    """
    Credential cache handing out a valid admin ``Authorization`` header.

    At most one token refresh is in flight per instance. Issuer errors are
    not cached or retried here; they propagate to the caller and the next
    call starts from a stale state again.
    """

    def __init__(
        self,
        username: str,
        password: str,
        issuer: TokenIssuer,
        safety_margin: timedelta = timedelta(seconds=TOKEN_SAFETY_MARGIN_SECONDS),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the credential cache.

        Args:
            username: SFTPGo admin username
            password: SFTPGo admin password
            issuer: Exchanges the credentials for a token
            safety_margin: Subtracted from the issuer-reported expiry
            clock: Source of the current time (timezone-aware)
        """
        self.username = username
        self.password = password
        self.issuer = issuer
        self.safety_margin = safety_margin
        self.clock = clock
        self.store = TokenStore()

    def _valid(self, token: StoredAccessToken | None) -> bool:
        return token is not None and token.is_valid(self.clock())

    async def get_auth_header_value(self) -> str:
        """
        Return ``Bearer <token>`` for a token that is valid right now.

        Raises:
            OperatorError: Whatever the issuer raised, unchanged
        """
        async with self.store.read() as token:
            if self._valid(token):
                return token.header_value

        # Stale or absent: serialize refreshes
        async with self.store.write() as store:
            # Another caller may have refreshed while we waited for the lock
            token = store.current
            if self._valid(token):
                return token.header_value

            try:
                issued = await self.issuer.create_admin_access_token(
                    self.username, self.password
                )
            except Exception:
                TOKEN_ISSUANCE_TOTAL.labels(result="error").inc()
                raise

            TOKEN_ISSUANCE_TOTAL.labels(result="success").inc()
            new_token = StoredAccessToken(
                access_token=issued.access_token,
                expires_at=issued.expires_at - self.safety_margin,
            )
            store.replace(new_token)
            logger.debug(
                f"Issued admin token for {self.username}, usable until "
                f"{new_token.expires_at.isoformat()}"
            )
            return new_token.header_value

    async def invalidate(self, header_value: str | None = None) -> None:
        """
        Drop the cached token so the next caller issues a new one.

        Args:
            header_value: Only drop the token if it still produces this header;
                a token refreshed by someone else in the meantime is kept
        """
        async with self.store.write() as store:
            token = store.current
            if token is None:
                return
            if header_value is None or token.header_value == header_value:
                store.replace(None)
                logger.debug(f"Invalidated cached admin token for {self.username}")
