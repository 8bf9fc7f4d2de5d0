"""
Polymarket CLOB client.

``ClobClient`` starts unauthenticated and can only read public market data.
``authenticate()`` runs the wallet handshake and returns a new,
authenticated client; every trading and account operation is guarded by
``requires_auth`` and refuses to run (before touching the network) on an
unauthenticated client.

Typical flow:
    async with ClobClient(ClientConfig()) as public:
        client = await public.authenticate(LocalSigner.from_key(pk))
        signed = await client.create_order("123", Side.BUY, "0.55", "10")
        result = await client.post_order(signed)
        await client.cancel_order(result.order_id)

Retries are never automatic. A timed-out ``post_order`` may or may not
have reached the exchange: reconcile with ``orders()`` before posting
again, and post a fresh order (new salt) rather than the same payload.
"""

import copy
import functools
import inspect
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from .auth import (
    AuthChallenge,
    AuthOptions,
    AuthState,
    AuthStatus,
    build_l2_headers,
    perform_handshake,
    sign_challenge,
)
from .config import ClientConfig
from .errors import (
    AuthError,
    FieldViolation,
    NotAuthenticatedError,
    ServerRejectedError,
    SigningError,
    ValidationError,
)
from .order_builder import Number, OrderBuilder
from .order_signer import OrderSigner
from .signer import Signer
from .transport import HttpTransport
from .types import (
    END_CURSOR,
    ApiCredentials,
    AssetType,
    BalanceAllowance,
    BalanceAllowanceQuery,
    CancelResult,
    OpenOrder,
    OrderBook,
    OrderFilter,
    OrdersPage,
    OrderType,
    PostOrderResult,
    Side,
    SignedOrder,
    mask,
)

logger = logging.getLogger(__name__)

# Endpoints
TIME = "/time"
GET_ORDER_BOOK = "/book"
POST_ORDER = "/order"
CANCEL = "/order"
CANCEL_ORDERS = "/orders"
CANCEL_ALL = "/cancel-all"
ORDERS = "/data/orders"
GET_BALANCE_ALLOWANCE = "/balance-allowance"
UPDATE_BALANCE_ALLOWANCE = "/balance-allowance/update"


def requires_auth(method):
    """
    The one place the authentication state is checked.

    Raises ``NotAuthenticatedError`` before the wrapped operation runs.
    """
    if inspect.iscoroutinefunction(method):
        @functools.wraps(method)
        async def async_wrapper(self, *args, **kwargs):
            self._ensure_authenticated(method.__name__)
            return await method(self, *args, **kwargs)
        return async_wrapper

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self._ensure_authenticated(method.__name__)
        return method(self, *args, **kwargs)
    return wrapper


def _dumps(payload: Any) -> str:
    # Compact and stable: the HMAC covers exactly this string
    return json.dumps(payload, separators=(",", ":"))


class ClobClient:
    """
    Async client for the CLOB REST API.

    Attributes:
        config: Client configuration
        state: Authentication state (read-only)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Create an unauthenticated client.

        Args:
            config: Host, chain, timeouts and contracts (defaults to Polygon mainnet)
            transport: Custom httpx transport (tests, proxies)
        """
        self.config = config or ClientConfig()
        self._http = HttpTransport(self.config.host, self.config.request_timeout, transport=transport)
        self._state = AuthState()
        self._signer: Optional[Signer] = None

    async def __aenter__(self):
        await self._http.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session (shared with derived clients)."""
        await self._http.close()

    def __repr__(self) -> str:
        return f"ClobClient(host={self.config.host}, state={self._state.status.value})"

    # === State ===

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def address(self) -> Optional[str]:
        """Signer address once authenticated."""
        return self._state.address

    def _ensure_authenticated(self, operation: str) -> None:
        if not self._state.is_authenticated:
            raise NotAuthenticatedError(
                f"{operation}() needs an authenticated client; call authenticate() first"
            )

    # === Authentication ===

    async def authenticate(self, signer: Signer, options: Optional[AuthOptions] = None) -> "ClobClient":
        """
        Run the wallet handshake and return an authenticated client.

        This client stays unauthenticated (usable for public data); the
        returned client shares its HTTP session.

        Args:
            signer: Wallet signer; borrowed for this call and for order signing
            options: Nonce, handshake mode, signature type / funder overrides

        Returns:
            Authenticated ClobClient

        Raises:
            AuthError: If this client is already authenticated or authenticating
            InvalidSignatureError: The exchange refused the signature
            SigningError: The signer failed or declined
            ServerRejectedError: Any other refusal
            NetworkError: Transport failure
        """
        if self._state.status is not AuthStatus.UNAUTHENTICATED:
            raise AuthError(f"cannot authenticate a client in state {self._state.status.value}")

        options = options or AuthOptions()
        signature_type = options.signature_type if options.signature_type is not None else self.config.signature_type
        funder = options.funder or self.config.funder

        challenge = AuthChallenge(
            host=self.config.host,
            address=signer.address,
            timestamp=options.timestamp if options.timestamp is not None else int(time.time()),
            nonce=options.nonce,
            chain_id=self.config.chain_id,
        )

        logger.info("Authenticating with CLOB...")
        logger.info(f"  Host: {self.config.host}")
        logger.info(f"  Chain ID: {self.config.chain_id}")
        logger.info(f"  Signature Type: {int(signature_type)}")
        logger.info(f"  Wallet: {signer.address}")
        logger.info(f"  Funder: {mask(funder) if funder else 'N/A'}")

        self._state = AuthState(status=AuthStatus.AUTHENTICATING)
        try:
            signature = await sign_challenge(challenge, signer)
            credentials = await perform_handshake(self._http, challenge, signature, options.mode)
        finally:
            self._state = AuthState()

        authed = copy.copy(self)
        authed._state = AuthState.authenticated(
            credentials=credentials,
            address=signer.address,
            signature_type=signature_type,
            funder=funder,
        )
        authed._signer = signer
        logger.info("Authentication successful!")
        return authed

    @property
    @requires_auth
    def credentials(self) -> ApiCredentials:
        return self._state.credentials

    # === Public market data ===

    async def server_time(self) -> int:
        """Exchange clock, unix seconds."""
        data = await self._http.request("GET", TIME)
        return int(data)

    async def order_book(self, token_id: str) -> OrderBook:
        """Order book snapshot for one token."""
        if not token_id:
            raise ValidationError([FieldViolation("token_id", "must not be empty")])
        data = await self._http.request("GET", GET_ORDER_BOOK, params={"token_id": token_id})
        return OrderBook.from_response(data or {})

    # === Orders ===

    @requires_auth
    def limit_order(self, token_id: str, side: Union[Side, str], price: Number, size: Number) -> OrderBuilder:
        """Builder pre-filled with this client's signer, funder and signature type."""
        return (
            OrderBuilder(token_id, side, price, size)
            .signer_address(self._state.address)
            .maker(self._state.funder)
            .signature_type(self._state.signature_type)
        )

    def order_signer(self, neg_risk: bool = False) -> OrderSigner:
        """Signer for this chain's (neg-risk) exchange contract."""
        return OrderSigner(
            chain_id=self.config.chain_id,
            verifying_contract=self.config.verifying_contract(neg_risk),
            domain_version=self.config.domain_version,
        )

    @requires_auth
    async def sign(self, order, signer: Optional[Signer] = None, neg_risk: bool = False) -> SignedOrder:
        """
        Sign a built order.

        Args:
            order: UnsignedOrder from ``limit_order(...).build()``
            signer: Defaults to the signer used to authenticate
            neg_risk: Sign for the neg-risk exchange contract
        """
        signer = signer or self._signer
        if signer is None:
            raise SigningError("no signer available")
        return await self.order_signer(neg_risk).sign(order, signer)

    @requires_auth
    async def create_order(
        self,
        token_id: str,
        side: Union[Side, str],
        price: Number,
        size: Number,
        order_type: Union[OrderType, str] = OrderType.GTC,
        expiration: Optional[int] = None,
        neg_risk: bool = False,
    ) -> SignedOrder:
        """Build and sign a limit order in one call (does not submit)."""
        order = (
            self.limit_order(token_id, side, price, size)
            .order_type(order_type)
            .expiration(expiration)
            .build()
        )
        return await self.sign(order, neg_risk=neg_risk)

    @requires_auth
    async def post_order(self, signed: SignedOrder, timeout: Optional[float] = None) -> PostOrderResult:
        """
        Submit a signed order.

        The exchange deduplicates on the order (salt), but a timeout here
        says nothing about whether it was accepted: check ``orders()``.

        Raises:
            ValidationError: 400
            AuthExpiredError: 401
            RateLimitedError: 429
            ServerError: 5xx
            ServerRejectedError: 2xx without an order id or error message
            RequestTimeoutError / NetworkError: transport failure
        """
        body = _dumps(signed.to_payload(self._state.credentials.key))
        data = await self._authed("POST", POST_ORDER, body=body, timeout=timeout)
        result = PostOrderResult.from_response(data if isinstance(data, dict) else {})
        # A result carries either an order id or a rejection reason
        if not result.order_id and not result.error_msg:
            raise ServerRejectedError(200, f"order intake returned no order id: {str(data)[:200]}")

        if result.success:
            logger.info(f"Order submitted: {result.order_id} ({result.status.value})")
        else:
            logger.warning(f"Order not accepted: {result.error_msg or data}")
        return result

    @requires_auth
    async def cancel_order(self, order_id: str) -> CancelResult:
        """Cancel one order. Unknown/already-cancelled ids come back in ``not_canceled``."""
        if not order_id:
            raise ValidationError([FieldViolation("order_id", "must not be empty")])
        data = await self._authed("DELETE", CANCEL, body=_dumps({"orderID": order_id}))
        result = CancelResult.from_response(data)
        self._log_cancel(result)
        return result

    @requires_auth
    async def cancel_orders(self, order_ids: List[str]) -> CancelResult:
        """Cancel several orders in one request."""
        if not order_ids:
            return CancelResult()
        data = await self._authed("DELETE", CANCEL_ORDERS, body=_dumps(list(order_ids)))
        result = CancelResult.from_response(data)
        self._log_cancel(result)
        return result

    @requires_auth
    async def cancel_all(self) -> CancelResult:
        """Cancel every open order of this account."""
        data = await self._authed("DELETE", CANCEL_ALL)
        result = CancelResult.from_response(data)
        self._log_cancel(result)
        return result

    def _log_cancel(self, result: CancelResult) -> None:
        if result.canceled:
            logger.info(f"Cancelled {len(result.canceled)} order(s)")
        for order_id, reason in result.not_canceled.items():
            logger.info(f"Not cancelled {order_id}: {reason}")

    @requires_auth
    async def orders(self, order_filter: Optional[OrderFilter] = None, marker: Optional[str] = None) -> OrdersPage:
        """
        One page of this account's open orders.

        Args:
            order_filter: Optional id / market / asset filters
            marker: Cursor from the previous page (None for the first page)

        Returns:
            OrdersPage; ``marker`` is None on the last page
        """
        params: Dict[str, str] = (order_filter or OrderFilter()).to_params()
        if marker:
            params["next_cursor"] = marker

        data = await self._authed("GET", ORDERS, params=params)
        if isinstance(data, list):
            rows, next_cursor = data, None
        else:
            data = data or {}
            rows, next_cursor = data.get("data") or [], data.get("next_cursor")

        orders = [OpenOrder.from_response(row) for row in rows]
        if not next_cursor or next_cursor == END_CURSOR:
            next_cursor = None
        return OrdersPage(orders=orders, marker=next_cursor)

    async def iter_orders(self, order_filter: Optional[OrderFilter] = None) -> AsyncIterator[OpenOrder]:
        """Walk all pages of ``orders()``, following the returned markers."""
        marker = None
        while True:
            page = await self.orders(order_filter, marker)
            for order in page.orders:
                yield order
            if page.is_last:
                return
            marker = page.marker

    # === Balances ===

    def _balance_params(self, query: BalanceAllowanceQuery) -> Dict[str, Any]:
        if query.asset_type is AssetType.CONDITIONAL and not query.token_id:
            raise ValidationError([FieldViolation("token_id", "required for CONDITIONAL assets")])
        params: Dict[str, Any] = {
            "asset_type": query.asset_type.value,
            "signature_type": int(self._state.signature_type),
        }
        if query.token_id:
            params["token_id"] = query.token_id
        return params

    @requires_auth
    async def balance_allowance(self, query: Optional[BalanceAllowanceQuery] = None) -> BalanceAllowance:
        """Balance/allowance snapshot for collateral or one conditional token."""
        query = query or BalanceAllowanceQuery()
        data = await self._authed("GET", GET_BALANCE_ALLOWANCE, params=self._balance_params(query))
        return BalanceAllowance.from_response(query, data if isinstance(data, dict) else {})

    @requires_auth
    async def update_balance_allowance(self, query: Optional[BalanceAllowanceQuery] = None) -> None:
        """
        Ask the exchange to refresh its view of the on-chain balance.

        Returns nothing; read ``balance_allowance()`` afterwards to see the
        new value.
        """
        query = query or BalanceAllowanceQuery()
        await self._authed("GET", UPDATE_BALANCE_ALLOWANCE, params=self._balance_params(query))

    # === Transport ===

    async def _authed(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        headers = build_l2_headers(self._state, method, path, body)
        return await self._http.request(
            method, path, params=params, body=body, headers=headers, timeout=timeout
        )
