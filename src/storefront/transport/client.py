"""
HTTP transport for the storefront REST backend.

Performs one exchange per call with a base URL, default headers and a
per-call timeout; attaches the current bearer credential; renews the
credential once (single flight) when the backend answers 401.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import orjson

from storefront.auth.credentials import CredentialStore
from storefront.exceptions import (
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ResponseFormatError,
)
from storefront.logging import get_logger
from storefront.transport.refresh import AuthExpiredHook, TokenRefresher
from storefront.types import ApiRequest, ApiResponse, Credential

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_REFRESH_PATH = "/auth/refresh-token"

# Max characters of a non-JSON error body kept on HttpError
MAX_ERROR_TEXT = 500


def _decode_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to text."""
    if not response.content:
        return None
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return response.text[:MAX_ERROR_TEXT]


class ApiTransport:
    """Client for the storefront REST backend.

    Usage:
        transport = ApiTransport("https://shop.example/api", credentials)
        response = await transport.get("/products", params={"page": 1})
        await transport.close()
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        timeout: float = DEFAULT_TIMEOUT,
        refresh_path: str = DEFAULT_REFRESH_PATH,
        on_auth_expired: AuthExpiredHook | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Backend base URL (e.g., "http://localhost:3000/api").
            credentials: Store providing and receiving bearer credentials.
            timeout: Per-call timeout in seconds.
            refresh_path: Credential renewal endpoint.
            on_auth_expired: Host hook invoked when renewal fails.
            http_transport: Optional httpx transport (tests use MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout
        self.refresh_path = refresh_path
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self.refresher = TokenRefresher(
            credentials,
            renew=self._renew_credential,
            on_auth_expired=on_auth_expired,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
                headers={"Accept": "application/json"},
                transport=self._http_transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ApiTransport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def send(self, request: ApiRequest) -> ApiResponse:
        """Send a request, renewing the credential once on 401.

        Args:
            request: The request to send.

        Returns:
            Parsed response.

        Raises:
            NetworkError: No response was received.
            RequestTimeoutError: No response before the timeout.
            HttpError: Non-2xx response (including a second 401).
            AuthExpiredError: The credential could not be renewed.
        """
        token = self.credentials.access_token
        try:
            return await self._send_once(request, token)
        except HttpError as e:
            # A 401 for an anonymous request (e.g. a bad login) is not an expired credential
            if (
                not e.is_unauthorized
                or token is None
                or request.auth_retried
                or request.skip_auth_refresh
            ):
                raise

            logger.info("Access token rejected, renewing credential", request=request.describe())
            credential = await self.refresher.refresh(token)
            return await self._send_once(request.mark_auth_retried(), credential.access_token)

    async def _send_once(self, request: ApiRequest, token: str | None) -> ApiResponse:
        client = await self._get_client()

        headers = dict(request.headers)
        if not request.is_multipart:
            headers.setdefault("Content-Type", "application/json")
        if token:
            headers["Authorization"] = f"Bearer {token}"

        started = time.monotonic()
        try:
            response = await client.request(
                request.method.upper(),
                request.path,
                params=request.params,
                json=request.json,
                data=request.data,
                files=request.files,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"{request.describe()} timed out after {self.timeout}s",
                timeout=self.timeout,
                context={"path": request.path},
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(
                f"{request.describe()} failed: {e}",
                context={"path": request.path, "error": type(e).__name__},
            ) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "HTTP exchange",
            request=request.describe(),
            status=response.status_code,
            elapsed_ms=elapsed_ms,
            auth_retried=request.auth_retried,
        )

        if not response.is_success:
            body = _decode_body(response)
            server_message = body.get("message") if isinstance(body, dict) else None
            raise HttpError(
                response.status_code,
                body,
                message=server_message if isinstance(server_message, str) and server_message else None,
                context={"path": request.path},
            )

        if not response.content:
            return ApiResponse(status_code=response.status_code)

        try:
            body = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise ResponseFormatError(
                response.status_code,
                response.text[:MAX_ERROR_TEXT],
                message="Response body is not valid JSON",
                context={"path": request.path},
            ) from e

        return ApiResponse.from_body(response.status_code, body)

    async def _renew_credential(self, current: Credential | None) -> Credential:
        """Exchange the refresh credential (or session cookie) for a new token."""
        payload = None
        if current is not None and current.refresh_token:
            payload = {"refreshToken": current.refresh_token}

        response = await self._send_once(
            ApiRequest("POST", self.refresh_path, json=payload, skip_auth_refresh=True),
            token=None,
        )

        access_token = response.get_field("token") or response.get_field("accessToken")
        if not isinstance(access_token, str) or not access_token:
            raise ResponseFormatError(
                response.status_code,
                response.body,
                message="Renewal response carried no token",
                context={"path": self.refresh_path},
            )
        refresh_token = response.get_field("refreshToken")
        return Credential(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
        )

    # ==================== Convenience verbs ====================

    async def get(self, path: str, params: dict[str, Any] | None = None) -> ApiResponse:
        """GET a path."""
        return await self.send(ApiRequest("GET", path, params=params))

    async def post(self, path: str, json: Any = None) -> ApiResponse:
        """POST a JSON body."""
        return await self.send(ApiRequest("POST", path, json=json))

    async def put(self, path: str, json: Any = None) -> ApiResponse:
        """PUT a JSON body."""
        return await self.send(ApiRequest("PUT", path, json=json))

    async def patch(self, path: str, json: Any = None) -> ApiResponse:
        """PATCH a JSON body."""
        return await self.send(ApiRequest("PATCH", path, json=json))

    async def delete(self, path: str) -> ApiResponse:
        """DELETE a path."""
        return await self.send(ApiRequest("DELETE", path))

    async def upload(
        self,
        path: str,
        files: Any,
        data: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """POST a multipart form (Content-Type set by httpx with the boundary)."""
        return await self.send(ApiRequest("POST", path, files=files, data=data))
