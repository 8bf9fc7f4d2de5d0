"""
Tests for typed-data hashing and order signing.

Our digests and signatures are cross-checked against eth-account's own
EIP-712 implementation.
"""

import asyncio

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from polymarket_clob.config import CONTRACTS, POLYGON
from polymarket_clob.eip712 import Domain, StructType, encode_field, typed_data_digest
from polymarket_clob.errors import EncodingError, SigningError
from polymarket_clob.order_builder import OrderBuilder
from polymarket_clob.order_signer import ORDER_STRUCT, OrderSigner, recover_order_signer
from polymarket_clob.signer import LocalSigner
from polymarket_clob.types import Side

from conftest import OTHER_PRIVATE_KEY, TEST_PRIVATE_KEY

EXCHANGE = CONTRACTS[POLYGON]["exchange"]


@pytest.fixture
def order_signer():
    return OrderSigner(chain_id=POLYGON, verifying_contract=EXCHANGE)


def make_order(signer, **overrides):
    b = OrderBuilder(
        overrides.pop("token_id", "123"),
        overrides.pop("side", Side.BUY),
        overrides.pop("price", "0.55"),
        overrides.pop("size", "10"),
    ).signer_address(signer.address).salt(overrides.pop("salt", 1234567890))
    for name, value in overrides.items():
        getattr(b, name)(value)
    return b.build()


class TestOrderStruct:
    """Tests for the fixed Order schema."""

    def test_encode_type(self):
        """Field order and widths match the exchange contract."""
        assert ORDER_STRUCT.encode_type == (
            "Order(uint256 salt,address maker,address signer,address taker,uint256 tokenId,"
            "uint256 makerAmount,uint256 takerAmount,uint256 expiration,uint256 nonce,"
            "uint256 feeRateBps,uint8 side,uint8 signatureType)"
        )

    def test_digest_matches_eth_account(self, order_signer, signer):
        """Our digest equals eth-account's for the same typed data."""
        order = make_order(signer)
        signed = Account.sign_typed_data(TEST_PRIVATE_KEY, full_message=order_signer.typed_data(order))
        assert bytes(signed.message_hash) == order_signer.order_hash(order)

    def test_domain_without_contract(self):
        """Domains without a verifying contract hash the short schema."""
        domain = Domain(name="ClobAuthDomain", version="1", chain_id=POLYGON)
        struct = StructType("Ping", (("value", "uint256"),))
        typed = {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                ],
                "Ping": [{"name": "value", "type": "uint256"}],
            },
            "primaryType": "Ping",
            "domain": {"name": "ClobAuthDomain", "version": "1", "chainId": POLYGON},
            "message": {"value": 7},
        }
        signed = Account.sign_typed_data(TEST_PRIVATE_KEY, full_message=typed)
        assert bytes(signed.message_hash) == typed_data_digest(domain, struct, {"value": 7})


class TestSigning:
    """Tests for OrderSigner.sign."""

    async def test_signature_recovers_signer(self, order_signer, signer):
        """The signature recovers to the signer address."""
        signed = await order_signer.sign(make_order(signer), signer)
        assert len(signed.signature) == 65
        assert signed.signature[-1] in (27, 28)
        assert recover_order_signer(signed) == signer.address

    async def test_signature_verifies_with_eth_account(self, order_signer, signer):
        """eth-account recovers the same signer from the typed data."""
        order = make_order(signer)
        signed = await order_signer.sign(order, signer)
        message = encode_typed_data(full_message=order_signer.typed_data(order))
        assert Account.recover_message(message, signature=signed.signature) == signer.address

    async def test_deterministic(self, order_signer, signer):
        """Same order and key give the same digest and signature."""
        order = make_order(signer)
        first = await order_signer.sign(order, signer)
        second = await order_signer.sign(order, signer)
        assert first.order_hash == second.order_hash
        assert first.signature == second.signature

    async def test_salt_changes_digest(self, order_signer, signer):
        """Different salts give different digests."""
        a = await order_signer.sign(make_order(signer, salt=1), signer)
        b = await order_signer.sign(make_order(signer, salt=2), signer)
        assert a.order_hash != b.order_hash

    async def test_contract_changes_digest(self, signer):
        """The neg-risk exchange signs a different digest."""
        order = make_order(signer)
        normal = OrderSigner(POLYGON, EXCHANGE).order_hash(order)
        neg_risk = OrderSigner(POLYGON, CONTRACTS[POLYGON]["neg_risk_exchange"]).order_hash(order)
        assert normal != neg_risk

    async def test_wrong_signer(self, order_signer, signer):
        """An order built for one key cannot be signed by another."""
        other = LocalSigner.from_key(OTHER_PRIVATE_KEY)
        with pytest.raises(SigningError):
            await order_signer.sign(make_order(signer), other)

    async def test_failing_signer(self, order_signer, signer):
        """Signer exceptions surface as SigningError."""

        class BrokenSigner:
            address = signer.address

            async def sign_digest(self, digest):
                raise RuntimeError("device unplugged")

        with pytest.raises(SigningError, match="device unplugged"):
            await order_signer.sign(make_order(signer), BrokenSigner())

    async def test_short_signature(self, order_signer, signer):
        """A signer returning the wrong length is rejected."""

        class ShortSigner:
            address = signer.address

            async def sign_digest(self, digest):
                return b"\x01" * 64

        with pytest.raises(SigningError):
            await order_signer.sign(make_order(signer), ShortSigner())

    async def test_payload(self, order_signer, signer):
        """Wire payload uses strings for amounts and the 0x signature."""
        signed = await order_signer.sign(make_order(signer), signer)
        payload = signed.to_payload("owner-key")
        order = payload["order"]
        assert payload["owner"] == "owner-key"
        assert payload["orderType"] == "GTC"
        assert order["makerAmount"] == "5500000"
        assert order["takerAmount"] == "5500000"
        assert order["tokenId"] == "123"
        assert order["side"] == "BUY"
        assert order["signatureType"] == 0
        assert order["salt"] == 1234567890
        assert order["signature"] == "0x" + signed.signature.hex()


class TestEncoding:
    """Tests for field range checks."""

    def test_uint256_overflow(self):
        with pytest.raises(EncodingError):
            encode_field("salt", "uint256", 2 ** 256)

    def test_uint8_overflow(self):
        with pytest.raises(EncodingError):
            encode_field("side", "uint8", 256)

    def test_negative(self):
        with pytest.raises(EncodingError):
            encode_field("nonce", "uint256", -1)

    def test_bad_address(self):
        with pytest.raises(EncodingError):
            encode_field("maker", "address", "0x1234")

    def test_token_id_not_numeric(self, order_signer, signer):
        """Token ids must be base-10 integers."""
        order = make_order(signer, token_id="0xabc")
        with pytest.raises(EncodingError) as exc:
            order_signer.order_hash(order)
        assert exc.value.field == "tokenId"

    def test_token_id_overflow(self, order_signer, signer):
        """Token ids beyond uint256 do not encode."""
        order = make_order(signer, token_id=str(2 ** 256))
        with pytest.raises(EncodingError):
            order_signer.order_hash(order)


class TestConcurrentSigning:
    """Tests for signing many orders at once on one key."""

    @pytest.mark.parametrize("serialize", [False, True])
    async def test_gathered_signatures(self, order_signer, serialize):
        """Concurrent signatures all recover, identical orders sign identically."""
        signer = LocalSigner.from_key(TEST_PRIVATE_KEY, serialize=serialize)
        orders = [make_order(signer, salt=salt) for salt in (1, 2, 3, 1, 2, 3)]

        signed = await asyncio.gather(*(order_signer.sign(order, signer) for order in orders))

        assert all(recover_order_signer(s) == signer.address for s in signed)
        assert signed[0].signature == signed[3].signature
        assert signed[1].signature == signed[4].signature
        assert signed[0].signature != signed[1].signature

    def test_serialized_signer_built_outside_loop(self, order_signer):
        """A serialized signer created before any loop runs works in a later one."""
        signer = LocalSigner.from_key(TEST_PRIVATE_KEY, serialize=True)
        orders = [make_order(signer, salt=salt) for salt in range(4)]

        async def sign_all():
            return await asyncio.gather(*(order_signer.sign(order, signer) for order in orders))

        first = asyncio.run(sign_all())
        second = asyncio.run(sign_all())
        assert [s.signature for s in first] == [s.signature for s in second]
        assert all(recover_order_signer(s) == signer.address for s in first)
