"""
HTTP transport for the CLOB API.

Thin async wrapper around ``httpx.AsyncClient`` that applies a timeout to
every call and maps transport failures and HTTP status codes onto the
client's error taxonomy. It never retries.
"""

import logging
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .errors import (
    AuthExpiredError,
    FieldViolation,
    ForbiddenError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ServerRejectedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "polymarket-clob-python"


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds to wait from a ``Retry-After`` header (delta or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def raise_for_status(response: httpx.Response) -> None:
    """
    Map a non-success response to an exception.

    400 -> ValidationError, 401 -> AuthExpiredError, 403 -> ForbiddenError,
    429 -> RateLimitedError, 5xx -> ServerError, anything else that is not
    2xx -> ServerRejectedError.
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    body = response.text
    if status == 400:
        raise ValidationError([FieldViolation("request", _error_message(response))], status=status, body=body)
    if status == 401:
        raise AuthExpiredError(f"401 from {response.request.url.path}: {body[:200]}")
    if status == 403:
        raise ForbiddenError(f"403 from {response.request.url.path}: {body[:200]}")
    if status == 429:
        raise RateLimitedError(parse_retry_after(response.headers.get("Retry-After")), body=body)
    if status >= 500:
        raise ServerError(status, body)
    raise ServerRejectedError(status, body)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or "bad request"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("errorMsg") or data)[:200]
    return str(data)[:200]


class HttpTransport:
    """
    Async HTTP session for one CLOB host.

    Usage:
        async with HttpTransport("https://clob.polymarket.com", 30) as http:
            book = await http.request("GET", "/book", params={"token_id": tid})
    """

    def __init__(
        self,
        host: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.host,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send one request and decode the JSON answer.

        Args:
            method: HTTP method
            path: Request path (also what L2 signatures cover)
            params: Query parameters
            body: Pre-serialized JSON body, sent byte for byte
            headers: Extra headers (auth)
            timeout: Overrides the default timeout for this call

        Returns:
            Decoded JSON, the raw text if the body is not JSON, or None if empty

        Raises:
            RequestTimeoutError: The call timed out; outcome unknown
            NetworkError: Connection-level failure
            ClobError subclass: Mapped from the HTTP status
        """
        if self._client is None:
            await self.connect()

        send_headers = dict(headers or {})
        if body is not None:
            send_headers["Content-Type"] = "application/json"

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                content=body,
                headers=send_headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e!r}")
            raise RequestTimeoutError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise NetworkError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
