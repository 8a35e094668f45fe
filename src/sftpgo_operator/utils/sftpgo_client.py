"""
SFTPGo admin API client utilities.

The client handles:
- Admin token issuance (it is the TokenIssuer of its own credential cache)
- Attaching a valid bearer token to every admin API request
- Mapping transport and HTTP failures onto the operator error taxonomy
- Sharing one client, and therefore one token cache, per SFTPGo server
"""

import asyncio
import hashlib
import logging
from datetime import timedelta
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx
from pydantic import ValidationError as PydanticValidationError

from sftpgo_operator.constants import (
    ADMIN_TOKEN_PATH,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    TOKEN_SAFETY_MARGIN_SECONDS,
)
from sftpgo_operator.errors import (
    AuthIssuanceError,
    DecodingError,
    ExternalApiError,
    UserInputError,
)
from sftpgo_operator.utils.admin_token import (
    AdminAccessToken,
    RefreshableAdminAuthContext,
    create_basic_auth_header,
)

logger = logging.getLogger(__name__)


class SftpgoClient:
    """
    Client for one SFTPGo server's admin API.

    Owns an httpx connection pool and a RefreshableAdminAuthContext that
    uses this client to issue tokens.
    """

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
        safety_margin: timedelta = timedelta(seconds=TOKEN_SAFETY_MARGIN_SECONDS),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize SFTPGo client.

        Args:
            server_url: Base URL of the SFTPGo server
            username: Admin username
            password: Admin password
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify TLS certificates
            safety_margin: Margin subtracted from admin token expiry
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.server_url = server_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.auth = RefreshableAdminAuthContext(
            username=username,
            password=password,
            issuer=self,
            safety_margin=safety_margin,
        )

        logger.debug(f"Initialized SFTPGo client for {self.server_url}")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                verify=self.verify_ssl,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
                headers={"Accept": "application/json"},
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SftpgoClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def url_for(self, path: str) -> str:
        """
        Build an absolute URL for an admin API path.

        Raises:
            UserInputError: If ``path`` is itself an absolute URL
        """
        if urlsplit(path).scheme:
            raise UserInputError(
                f"Expected an API path, got absolute URL '{path}'", field="path"
            )
        return urljoin(f"{self.server_url}/", path.lstrip("/"))

    async def create_admin_access_token(
        self, username: str, password: str
    ) -> AdminAccessToken:
        """
        Exchange admin credentials for a token at the token endpoint.

        Raises:
            AuthIssuanceError: Endpoint unreachable or credentials rejected
            DecodingError: Response body is not a valid token payload
        """
        url = self.url_for(ADMIN_TOKEN_PATH)
        client = self._get_client()

        try:
            response = await client.get(
                url,
                headers={"Authorization": create_basic_auth_header(username, password)},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Token request to {self.server_url} rejected",
                extra={
                    "server_url": self.server_url,
                    "http_status": e.response.status_code,
                },
            )
            raise AuthIssuanceError(
                f"Token request to {self.server_url} rejected",
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint of {self.server_url} unreachable: {e}")
            raise AuthIssuanceError(
                f"Token endpoint of {self.server_url} unreachable: {e}", cause=e
            ) from e

        try:
            return AdminAccessToken.model_validate_json(response.content)
        except PydanticValidationError as e:
            raise DecodingError(
                f"Invalid token response from {self.server_url}: "
                f"{e.error_count()} validation error(s)",
                cause=e,
            ) from e

    async def get_auth_header_value(self) -> str:
        """Valid ``Authorization`` header value for the admin API."""
        return await self.auth.get_auth_header_value()

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Make an authenticated request to the SFTPGo admin API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path, e.g. ``/api/v2/users``
            json: JSON request body
            params: Query parameters

        Returns:
            The successful response

        Raises:
            AuthIssuanceError: If no admin token could be obtained
            ExternalApiError: On transport failures or non-2xx responses
        """
        url = self.url_for(path)
        auth_header = await self.auth.get_auth_header_value()
        client = self._get_client()

        try:
            response = await client.request(
                method=method,
                url=url,
                json=json,
                params=params,
                headers={"Authorization": auth_header},
            )
            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            response_body = e.response.text or "<no content>"

            if status_code == 401:
                # Token revoked server-side; the next caller will issue a new one
                logger.warning(f"Admin token rejected by {self.server_url}")
                await self.auth.invalidate(auth_header)

            error = ExternalApiError(
                f"{method} {path} failed",
                status_code=status_code,
                response_body=response_body,
                cause=e,
            )
            logger.error(
                f"Request failed: {method} {url} - {status_code}",
                extra={
                    "http_status": status_code,
                    "response_body": error.body_preview(1024),
                },
            )
            raise error from e

        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {url} - {e}")
            raise ExternalApiError(f"{method} {path} failed: {e}", cause=e) from e


def _password_digest(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


class SftpgoMultiClient:
    """
    Registry of SftpgoClients, one per (server URL, admin username, password).

    Every reconciliation using the same credentials for a server shares one
    client and therefore one admin token cache. A rotated password gets a new
    client; the superseded one stays open for reconciles still holding it and
    is closed with the registry.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
        safety_margin: timedelta = timedelta(seconds=TOKEN_SAFETY_MARGIN_SECONDS),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.safety_margin = safety_margin
        self._transport = transport
        self._clients: dict[tuple[str, str, str], SftpgoClient] = {}
        self._lock = asyncio.Lock()

    async def get_client(
        self, server_url: str, username: str, password: str
    ) -> SftpgoClient:
        """Return the shared client for a server, creating it on first use."""
        url = server_url.rstrip("/")
        key = (url, username, _password_digest(password))

        async with self._lock:
            client = self._clients.get(key)
            if client is not None:
                return client

            if any(k[:2] == key[:2] for k in self._clients):
                logger.info(f"New admin password for {username}@{url}, adding client")

            client = SftpgoClient(
                server_url=url,
                username=username,
                password=password,
                timeout=self.timeout,
                verify_ssl=self.verify_ssl,
                safety_margin=self.safety_margin,
                transport=self._transport,
            )
            self._clients[key] = client
            logger.debug(f"Created and cached SFTPGo client for {url}")
            return client

    def __len__(self) -> int:
        return len(self._clients)

    async def aclose(self) -> None:
        """Close every cached client."""
        async with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            await client.aclose()
