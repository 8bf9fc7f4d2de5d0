"""
Polymarket CLOB client.

Async client for the Polymarket central limit order book: wallet
handshake, deterministic order building, EIP-712 order signing, and the
authenticated trading and account endpoints.
"""

from .auth import AuthChallenge, AuthOptions, AuthState, AuthStatus, HandshakeMode
from .client import ClobClient
from .config import AMOY, POLYGON, ClientConfig, RetryPolicy
from .errors import (
    AuthError,
    AuthExpiredError,
    ClobError,
    EncodingError,
    FieldViolation,
    ForbiddenError,
    InvalidSignatureError,
    NetworkError,
    NotAuthenticatedError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ServerRejectedError,
    SigningError,
    ValidationError,
)
from .order_builder import OrderBuilder
from .order_signer import OrderSigner, recover_order_signer
from .retry import call_with_retry
from .signer import LocalSigner, Signer
from .types import (
    ApiCredentials,
    AssetType,
    BalanceAllowance,
    BalanceAllowanceQuery,
    CancelResult,
    OpenOrder,
    OrderBook,
    OrderFilter,
    OrdersPage,
    OrderStatus,
    OrderType,
    PostOrderResult,
    Side,
    SignatureType,
    SignedOrder,
    UnsignedOrder,
)

__version__ = "0.1.0"

__all__ = [
    "AMOY",
    "POLYGON",
    "ApiCredentials",
    "AssetType",
    "AuthChallenge",
    "AuthError",
    "AuthExpiredError",
    "AuthOptions",
    "AuthState",
    "AuthStatus",
    "BalanceAllowance",
    "BalanceAllowanceQuery",
    "CancelResult",
    "ClientConfig",
    "ClobClient",
    "ClobError",
    "EncodingError",
    "FieldViolation",
    "ForbiddenError",
    "HandshakeMode",
    "InvalidSignatureError",
    "LocalSigner",
    "NetworkError",
    "NotAuthenticatedError",
    "OpenOrder",
    "OrderBook",
    "OrderBuilder",
    "OrderFilter",
    "OrderSigner",
    "OrderStatus",
    "OrderType",
    "OrdersPage",
    "PostOrderResult",
    "RateLimitedError",
    "RequestTimeoutError",
    "RetryPolicy",
    "ServerError",
    "ServerRejectedError",
    "Side",
    "SignatureType",
    "SignedOrder",
    "Signer",
    "SigningError",
    "UnsignedOrder",
    "ValidationError",
    "call_with_retry",
    "recover_order_signer",
]
