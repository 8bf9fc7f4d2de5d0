"""
Core types for the CLOB client.

Enums mirror the exchange's wire values; dataclasses are the values the
builder, signer and client pass around. Prices, sizes and balances are
always ``Decimal``; on-chain amounts are plain ``int``.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Cursor the exchange returns on the last page of a paginated listing
END_CURSOR = "LTE="


class Side(Enum):
    """Order side."""
    BUY = "BUY"
    SELL = "SELL"

    @property
    def code(self) -> int:
        """uint8 value used in the signed order struct."""
        return 0 if self is Side.BUY else 1

    @classmethod
    def parse(cls, value: Any) -> "Side":
        if isinstance(value, Side):
            return value
        return cls(str(value).upper())


class OrderType(Enum):
    """Time in force."""
    GTC = "GTC"  # Good till cancelled
    GTD = "GTD"  # Good till date
    FOK = "FOK"  # Fill or kill
    FAK = "FAK"  # Fill and kill


class SignatureType(IntEnum):
    """
    Wallet flavour the maker funds live in.

    Passed through to the exchange untouched:
        0 = EOA (MetaMask, hardware wallet, direct private key)
        1 = Email/Magic proxy wallet
        2 = Browser wallet Gnosis Safe
    """
    EOA = 0
    POLY_PROXY = 1
    POLY_GNOSIS_SAFE = 2


class AssetType(Enum):
    """Balance/allowance asset kind."""
    COLLATERAL = "COLLATERAL"
    CONDITIONAL = "CONDITIONAL"


class OrderStatus(Enum):
    """
    Server-owned order lifecycle.

    BUILT and SIGNED are local; everything after SUBMITTED is only
    observed through ``orders()`` polling.
    """
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    LIVE = "live"
    MATCHED = "matched"
    DELAYED = "delayed"
    UNMATCHED = "unmatched"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        if value is None:
            return cls.UNKNOWN
        text = str(value).strip().lower()
        if text == "canceled":
            text = "cancelled"
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ApiCredentials:
    """L2 credentials derived by the handshake. Held in memory only."""
    key: str
    secret: str
    passphrase: str

    def __repr__(self) -> str:
        return f"ApiCredentials(key={mask(self.key)}, secret=***, passphrase=***)"

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> Optional["ApiCredentials"]:
        key = data.get("apiKey") or data.get("api_key") or data.get("key")
        secret = data.get("secret")
        passphrase = data.get("passphrase")
        if not (key and secret and passphrase):
            return None
        return cls(key=str(key), secret=str(secret), passphrase=str(passphrase))


@dataclass(frozen=True)
class UnsignedOrder:
    """
    A validated order ready for signing.

    ``maker_amount`` / ``taker_amount`` are 6-decimal fixed-point
    integers derived from price x size by the builder.
    """
    token_id: str
    side: Side
    price: Decimal
    size: Decimal
    maker_amount: int
    taker_amount: int
    salt: int
    maker: str
    signer: str
    taker: str = ZERO_ADDRESS
    order_type: OrderType = OrderType.GTC
    expiration: int = 0
    nonce: int = 0
    fee_rate_bps: int = 0
    signature_type: SignatureType = SignatureType.EOA


@dataclass(frozen=True)
class SignedOrder:
    """An order plus its typed-data digest and 65-byte signature."""
    order: UnsignedOrder
    order_hash: bytes
    signature: bytes

    @property
    def order_hash_hex(self) -> str:
        return "0x" + self.order_hash.hex()

    @property
    def signature_hex(self) -> str:
        return "0x" + self.signature.hex()

    def to_payload(self, owner: str) -> Dict[str, Any]:
        """Body for the order-intake endpoint."""
        o = self.order
        return {
            "order": {
                "salt": o.salt,
                "maker": o.maker,
                "signer": o.signer,
                "taker": o.taker,
                "tokenId": o.token_id,
                "makerAmount": str(o.maker_amount),
                "takerAmount": str(o.taker_amount),
                "expiration": str(o.expiration),
                "nonce": str(o.nonce),
                "feeRateBps": str(o.fee_rate_bps),
                "side": o.side.value,
                "signatureType": int(o.signature_type),
                "signature": self.signature_hex,
            },
            "owner": owner,
            "orderType": o.order_type.value,
        }


@dataclass
class PostOrderResult:
    """Decoded answer of the order-intake endpoint."""
    order_id: str
    status: OrderStatus
    success: bool = True
    error_msg: str = ""
    transaction_hashes: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "PostOrderResult":
        order_id = ""
        for key in ("orderID", "orderId", "order_id", "id"):
            if data.get(key):
                order_id = str(data[key])
                break
        hashes = data.get("transactionsHashes") or data.get("transactionHashes") or []
        return cls(
            order_id=order_id,
            status=OrderStatus.parse(data.get("status")),
            success=bool(data.get("success", True)) and bool(order_id),
            error_msg=str(data.get("errorMsg") or ""),
            transaction_hashes=[str(h) for h in hashes],
            raw=data,
        )


@dataclass
class CancelResult:
    """
    Outcome of a cancellation.

    Unknown or already-cancelled ids land in ``not_canceled`` with the
    exchange's reason instead of raising.
    """
    canceled: List[str] = field(default_factory=list)
    not_canceled: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Any) -> "CancelResult":
        if not isinstance(data, dict):
            return cls()
        canceled = [str(i) for i in data.get("canceled") or []]
        not_canceled = {str(k): str(v) for k, v in (data.get("not_canceled") or {}).items()}
        return cls(canceled=canceled, not_canceled=not_canceled)

    def was_canceled(self, order_id: str) -> bool:
        return order_id in self.canceled


@dataclass
class OpenOrder:
    """An order as listed by the exchange."""
    order_id: str
    status: OrderStatus
    market: str = ""
    asset_id: str = ""
    side: Optional[Side] = None
    price: Decimal = Decimal("0")
    original_size: Decimal = Decimal("0")
    size_matched: Decimal = Decimal("0")
    order_type: str = ""
    created_at: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "OpenOrder":
        side = data.get("side")
        created = data.get("created_at")
        return cls(
            order_id=str(data.get("id") or data.get("orderID") or ""),
            status=OrderStatus.parse(data.get("status")),
            market=str(data.get("market") or ""),
            asset_id=str(data.get("asset_id") or ""),
            side=Side.parse(side) if side else None,
            price=Decimal(str(data.get("price") or "0")),
            original_size=Decimal(str(data.get("original_size") or "0")),
            size_matched=Decimal(str(data.get("size_matched") or "0")),
            order_type=str(data.get("order_type") or ""),
            created_at=int(created) if created is not None else None,
            raw=data,
        )


@dataclass
class OrderFilter:
    """Optional filters for ``orders()``."""
    order_id: Optional[str] = None
    market: Optional[str] = None
    asset_id: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params = {}
        if self.order_id:
            params["id"] = self.order_id
        if self.market:
            params["market"] = self.market
        if self.asset_id:
            params["asset_id"] = self.asset_id
        return params


@dataclass
class OrdersPage:
    """
    One page of ``orders()``.

    ``marker`` is the opaque cursor for the next call, ``None`` on the
    final page.
    """
    orders: List[OpenOrder]
    marker: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.marker is None


@dataclass
class BalanceAllowanceQuery:
    """Key of a balance/allowance snapshot."""
    asset_type: AssetType = AssetType.COLLATERAL
    token_id: Optional[str] = None


@dataclass
class BalanceAllowance:
    """Balance/allowance snapshot, in 6-decimal base units."""
    asset_type: AssetType
    balance: int
    allowance: int
    token_id: Optional[str] = None

    @property
    def balance_units(self) -> Decimal:
        """Balance in whole tokens (USDC has 6 decimals)."""
        return Decimal(self.balance) / Decimal(10**6)

    @classmethod
    def from_response(cls, query: BalanceAllowanceQuery, data: Dict[str, Any]) -> "BalanceAllowance":
        allowance = data.get("allowance")
        if allowance is None:
            # Newer responses report one allowance per exchange contract
            allowances = data.get("allowances") or {}
            allowance = max((int(v) for v in allowances.values()), default=0)
        return cls(
            asset_type=query.asset_type,
            token_id=query.token_id,
            balance=int(data.get("balance") or 0),
            allowance=int(allowance or 0),
        )


@dataclass
class OrderBookLevel:
    """Single level in order book."""
    price: Decimal
    size: Decimal

    @property
    def notional(self) -> Decimal:
        return self.price * self.size


@dataclass
class OrderBook:
    """Order book snapshot for a token."""
    asset_id: str
    market: str = ""
    bids: List[OrderBookLevel] = field(default_factory=list)
    asks: List[OrderBookLevel] = field(default_factory=list)
    hash: str = ""
    timestamp: Optional[int] = None

    @property
    def best_bid(self) -> Optional[Decimal]:
        return max((level.price for level in self.bids), default=None)

    @property
    def best_ask(self) -> Optional[Decimal]:
        return min((level.price for level in self.asks), default=None)

    @property
    def mid_price(self) -> Optional[Decimal]:
        if self.best_bid is not None and self.best_ask is not None:
            return (self.best_bid + self.best_ask) / 2
        return self.best_bid if self.best_bid is not None else self.best_ask

    @property
    def spread(self) -> Optional[Decimal]:
        if self.best_bid is not None and self.best_ask is not None:
            return self.best_ask - self.best_bid
        return None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "OrderBook":
        def levels(rows):
            return [
                OrderBookLevel(price=Decimal(str(r["price"])), size=Decimal(str(r["size"])))
                for r in rows or []
            ]

        ts = data.get("timestamp")
        return cls(
            asset_id=str(data.get("asset_id") or ""),
            market=str(data.get("market") or ""),
            bids=levels(data.get("bids")),
            asks=levels(data.get("asks")),
            hash=str(data.get("hash") or ""),
            timestamp=int(ts) if ts not in (None, "") else None,
        )


def mask(value: str) -> str:
    """Show only the ends of an identifier in logs."""
    if not value:
        return "N/A"
    if len(value) <= 12:
        return value[:2] + "..."
    return f"{value[:8]}...{value[-4:]}"
