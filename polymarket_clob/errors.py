"""
Error taxonomy for the CLOB client.

Every fallible operation raises one of these. Each class carries a
``retryable`` flag so callers can decide on a retry policy without
matching on concrete types:

- ValidationError / EncodingError / SigningError: fix the input or signer
- AuthError family: re-run the handshake (or fix credentials)
- NetworkError / RateLimitedError / ServerError: safe to retry later

The client itself never retries.
"""

from dataclasses import dataclass
from typing import List, Optional


class ClobError(Exception):
    """Base class for all client errors."""

    retryable: bool = False


@dataclass(frozen=True)
class FieldViolation:
    """A single violated field constraint."""
    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


class ValidationError(ClobError):
    """
    Client-side field violations, or a 400 from the exchange.

    Attributes:
        violations: Every violated constraint, not just the first one
        status: HTTP status when raised from a server response
        body: Raw response body when raised from a server response
    """

    def __init__(
        self,
        violations: List[FieldViolation],
        status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.violations = list(violations)
        self.status = status
        self.body = body
        super().__init__("; ".join(str(v) for v in self.violations) or "validation failed")

    @property
    def fields(self) -> List[str]:
        return [v.field for v in self.violations]


class EncodingError(ClobError):
    """A field value does not fit its typed-data representation."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"cannot encode {field}: {reason}")


class SigningError(ClobError):
    """The signer is unavailable, declined, or returned garbage."""


class AuthError(ClobError):
    """Authentication failures. Not retryable without a new handshake."""


class InvalidSignatureError(AuthError):
    """The exchange did not accept the handshake signature."""


class AuthExpiredError(AuthError):
    """The exchange answered 401 to an authenticated request."""


class ForbiddenError(AuthError):
    """The exchange answered 403."""


class NotAuthenticatedError(AuthError):
    """A trading operation was attempted on an unauthenticated client."""


class NetworkError(ClobError):
    """Connection-level failure. The server-side effect is unknown."""

    retryable = True


class RequestTimeoutError(NetworkError, TimeoutError):
    """
    The request did not complete within its timeout.

    Nothing is known about whether the server applied the request; a
    timed-out order submission must be reconciled with ``orders()``.
    """


class RateLimitedError(ClobError):
    """429 from the exchange."""

    retryable = True

    def __init__(self, retry_after: Optional[float], body: Optional[str] = None):
        self.retry_after = retry_after
        self.body = body
        detail = f"retry after {retry_after}s" if retry_after is not None else "no retry hint"
        super().__init__(f"rate limited ({detail})")


class ServerError(ClobError):
    """5xx from the exchange."""

    retryable = True

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"server error {status}: {body[:200]}")


class ServerRejectedError(ClobError):
    """Any other non-success answer from the exchange."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"server rejected request ({status}): {body[:200]}")
