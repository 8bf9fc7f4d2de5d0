"""
Order signing.

Turns an ``UnsignedOrder`` into a ``SignedOrder``: computes the EIP-712
digest of the exchange's ``Order`` struct under the exchange domain, asks
the ``Signer`` for a signature over it, and packages both.
"""

import logging
from typing import Any, Dict

from eth_account import Account
from web3 import Web3

from .eip712 import Domain, StructType, full_message, typed_data_digest
from .errors import EncodingError, SigningError
from .signer import Signer, check_signature
from .types import SignedOrder, UnsignedOrder

logger = logging.getLogger(__name__)

EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"

# Field order and widths are fixed by the exchange contract.
ORDER_STRUCT = StructType(
    "Order",
    (
        ("salt", "uint256"),
        ("maker", "address"),
        ("signer", "address"),
        ("taker", "address"),
        ("tokenId", "uint256"),
        ("makerAmount", "uint256"),
        ("takerAmount", "uint256"),
        ("expiration", "uint256"),
        ("nonce", "uint256"),
        ("feeRateBps", "uint256"),
        ("side", "uint8"),
        ("signatureType", "uint8"),
    ),
)


def order_values(order: UnsignedOrder) -> Dict[str, Any]:
    """Struct values of an order, as they are hashed."""
    token_id = order.token_id
    if not (token_id.isascii() and token_id.isdigit()):
        raise EncodingError("tokenId", f"not a base-10 integer: {token_id!r}")
    return {
        "salt": order.salt,
        "maker": order.maker,
        "signer": order.signer,
        "taker": order.taker,
        "tokenId": int(token_id),
        "makerAmount": order.maker_amount,
        "takerAmount": order.taker_amount,
        "expiration": order.expiration,
        "nonce": order.nonce,
        "feeRateBps": order.fee_rate_bps,
        "side": order.side.code,
        "signatureType": int(order.signature_type),
    }


class OrderSigner:
    """
    Signs orders for one exchange contract on one chain.

    Attributes:
        domain: The typed-data domain (name, version, chain id, contract)
    """

    def __init__(self, chain_id: int, verifying_contract: str, domain_version: str = "1"):
        self.domain = Domain(
            name=EXCHANGE_DOMAIN_NAME,
            version=domain_version,
            chain_id=chain_id,
            verifying_contract=Web3.to_checksum_address(verifying_contract),
        )

    def order_hash(self, order: UnsignedOrder) -> bytes:
        """
        Typed-data digest of an order.

        Raises:
            EncodingError: If a field does not fit its struct type
        """
        return typed_data_digest(self.domain, ORDER_STRUCT, order_values(order))

    def typed_data(self, order: UnsignedOrder) -> Dict[str, Any]:
        """The order as an ``eth_signTypedData_v4`` document."""
        return full_message(self.domain, ORDER_STRUCT, order_values(order))

    async def sign(self, order: UnsignedOrder, signer: Signer) -> SignedOrder:
        """
        Sign an order.

        Args:
            order: Order from ``OrderBuilder.build()``
            signer: Signer whose address is ``order.signer``

        Returns:
            SignedOrder carrying the digest and the 65-byte signature

        Raises:
            EncodingError: If a field is out of range
            SigningError: If the signer fails, declines, or is the wrong key
        """
        if signer.address.lower() != order.signer.lower():
            raise SigningError(
                f"order is for signer {order.signer} but got signer {signer.address}"
            )

        digest = self.order_hash(order)
        try:
            signature = await signer.sign_digest(digest)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"signer failed: {e}") from e

        signed = SignedOrder(order=order, order_hash=digest, signature=check_signature(signature))
        logger.debug(
            f"Signed {order.side.value} {order.size} @ {order.price} "
            f"(token: {order.token_id[:16]}...) hash={signed.order_hash_hex}"
        )
        return signed


def recover_order_signer(signed: SignedOrder) -> str:
    """Address that produced ``signed.signature`` over ``signed.order_hash``."""
    return Account._recover_hash(signed.order_hash, signature=signed.signature)
