"""
Order builder.

Mandatory fields (token, side, price, size) are given at creation, the
optional ones are set fluently, and ``build()`` validates everything in
one pass before deriving salt and amounts.

Amount scaling: price and size are decimals; the on-chain amounts are
integers with 6 implied decimals. Both amounts are
``round_half_even(price * size * 10**6)`` for either side, so two
independent implementations produce identical integers, hence identical
digests, for the same logical order.
"""

import logging
import secrets
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Any, List, Optional, Union

from .errors import FieldViolation, ValidationError
from .types import ZERO_ADDRESS, OrderType, SignatureType, Side, UnsignedOrder

logger = logging.getLogger(__name__)

AMOUNT_DECIMALS = 6
AMOUNT_SCALE = Decimal(10) ** AMOUNT_DECIMALS
SALT_BITS = 256

Number = Union[Decimal, int, str, float]


def to_decimal(value: Number) -> Decimal:
    """
    Convert user input to Decimal without binary float arithmetic.

    Floats go through their shortest repr, so ``0.55`` becomes
    ``Decimal("0.55")`` and not ``0.55000000000000004440...``.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers here")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"not a decimal number: {value!r}") from e
    else:
        raise ValueError(f"unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def to_token_units(*factors: Decimal) -> int:
    """Scale the product of ``factors`` to 6-decimal base units, half-even."""
    with localcontext() as ctx:
        ctx.prec = 120
        value = Decimal(1)
        for factor in factors:
            value *= factor
        scaled = (value * AMOUNT_SCALE).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return int(scaled)


def generate_salt() -> int:
    """Fresh random 256-bit salt."""
    return secrets.randbits(SALT_BITS)


class OrderBuilder:
    """
    Accumulates order fields and emits an ``UnsignedOrder``.

    Setters only record values; nothing is checked until ``build()``,
    which reports every violated constraint at once.

    Example:
        order = (
            OrderBuilder("123", Side.BUY, "0.55", "10")
            .signer_address(signer.address)
            .order_type(OrderType.GTD)
            .expiration(1735689600)
            .build()
        )
    """

    def __init__(self, token_id: str, side: Union[Side, str], price: Number, size: Number):
        self._token_id = token_id
        self._side = side
        self._price = price
        self._size = size
        self._order_type: Any = OrderType.GTC
        self._expiration: Optional[int] = None
        self._fee_rate_bps: int = 0
        self._taker: str = ZERO_ADDRESS
        self._nonce: int = 0
        self._salt: Optional[int] = None
        self._maker: Optional[str] = None
        self._signer: Optional[str] = None
        self._signature_type: SignatureType = SignatureType.EOA

    # === Optional fields ===

    def order_type(self, order_type: Union[OrderType, str]) -> "OrderBuilder":
        self._order_type = order_type
        return self

    def expiration(self, timestamp: Optional[int]) -> "OrderBuilder":
        """Unix timestamp (seconds) after which a GTD order expires."""
        self._expiration = timestamp
        return self

    def fee_rate_bps(self, bps: int) -> "OrderBuilder":
        self._fee_rate_bps = bps
        return self

    def taker(self, address: str) -> "OrderBuilder":
        self._taker = address
        return self

    def nonce(self, nonce: int) -> "OrderBuilder":
        self._nonce = nonce
        return self

    def salt(self, salt: int) -> "OrderBuilder":
        """Pin the salt. Reusing a salt for two orders is a caller bug."""
        self._salt = salt
        return self

    def maker(self, address: Optional[str]) -> "OrderBuilder":
        """Address holding the funds; defaults to the signer address."""
        self._maker = address
        return self

    def signer_address(self, address: str) -> "OrderBuilder":
        self._signer = address
        return self

    def signature_type(self, signature_type: Union[SignatureType, int]) -> "OrderBuilder":
        self._signature_type = signature_type
        return self

    # === Finalize ===

    def build(self) -> UnsignedOrder:
        """
        Validate and derive the unsigned order.

        Returns:
            UnsignedOrder with salt, maker/taker and amounts filled in

        Raises:
            ValidationError: Listing every violated field
        """
        violations: List[FieldViolation] = []

        def bad(field: str, reason: str) -> None:
            violations.append(FieldViolation(field, reason))

        token_id = str(self._token_id).strip() if self._token_id is not None else ""
        if not token_id:
            bad("token_id", "must not be empty")

        side = None
        try:
            side = Side.parse(self._side)
        except ValueError:
            bad("side", f"must be BUY or SELL, got {self._side!r}")

        price = None
        try:
            price = to_decimal(self._price)
            if not (Decimal(0) < price < Decimal(1)):
                bad("price", f"must be strictly between 0 and 1, got {price}")
                price = None
        except ValueError as e:
            bad("price", str(e))

        size = None
        try:
            size = to_decimal(self._size)
            if size <= 0:
                bad("size", f"must be > 0, got {size}")
                size = None
        except ValueError as e:
            bad("size", str(e))

        order_type = None
        try:
            order_type = OrderType(
                self._order_type.upper() if isinstance(self._order_type, str) else self._order_type
            )
        except ValueError:
            bad("order_type", f"unknown order type {self._order_type!r}")

        expiration = self._expiration or 0
        if not isinstance(expiration, int) or isinstance(expiration, bool):
            bad("expiration", "must be an integer unix timestamp")
            expiration = 0
        elif expiration < 0:
            bad("expiration", "must not be negative")
        if order_type is OrderType.GTD and not self._expiration:
            bad("expiration", "required for GTD orders")

        def non_negative_int(field: str, value: Any) -> None:
            if not isinstance(value, int) or isinstance(value, bool):
                bad(field, f"must be an integer, got {value!r}")
            elif value < 0:
                bad(field, "must not be negative")

        non_negative_int("fee_rate_bps", self._fee_rate_bps)
        non_negative_int("nonce", self._nonce)
        if self._salt is not None:
            non_negative_int("salt", self._salt)

        signature_type = None
        try:
            signature_type = SignatureType(int(self._signature_type))
        except (TypeError, ValueError):
            bad("signature_type", f"unknown signature type {self._signature_type!r}")

        if not self._signer:
            bad("signer", "signer address is required")

        amount = None
        if price is not None and size is not None:
            try:
                amount = to_token_units(price, size)
            except InvalidOperation:
                bad("size", "too large to scale to base units")

        if violations:
            logger.debug(f"Order rejected by builder: {[str(v) for v in violations]}")
            raise ValidationError(violations)

        salt = self._salt if self._salt is not None else generate_salt()
        return UnsignedOrder(
            token_id=token_id,
            side=side,
            price=price,
            size=size,
            maker_amount=amount,
            taker_amount=amount,
            salt=salt,
            maker=self._maker or self._signer,
            signer=self._signer,
            taker=self._taker or ZERO_ADDRESS,
            order_type=order_type,
            expiration=expiration,
            nonce=self._nonce,
            fee_rate_bps=self._fee_rate_bps,
            signature_type=signature_type,
        )
