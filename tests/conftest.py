"""
Shared fixtures: a stateful in-process CLOB exchange behind httpx.MockTransport.

The fake checks handshake signatures (recovering the ClobAuth signer with
eth-account) and L2 HMAC headers, keeps open orders, paginates listings and
keeps a cached balance that only moves on an explicit update.
"""

import base64
import hashlib
import hmac
import json
from collections import deque
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from eth_account import Account
from eth_account.messages import encode_typed_data

from polymarket_clob.auth import AuthOptions
from polymarket_clob.client import ClobClient
from polymarket_clob.config import ClientConfig
from polymarket_clob.signer import LocalSigner

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_PRIVATE_KEY = "0x" + "22" * 32
TEST_TIMESTAMP = 1700000000

API_KEY = "f4f247b7-4ac7-ff29-a152-04fda0a8755a"
API_SECRET = base64.urlsafe_b64encode(b"s" * 32).decode()
API_PASSPHRASE = "passphrase-1234"

AUTHED_PATHS = {"/order", "/orders", "/cancel-all", "/data/orders", "/balance-allowance", "/balance-allowance/update"}


def _cursor(offset: int) -> str:
    return base64.b64encode(str(offset).encode()).decode()


def _offset(cursor: Optional[str]) -> int:
    if not cursor:
        return 0
    return int(base64.b64decode(cursor).decode())


class FakeExchange:
    """
    Minimal CLOB server.

    Attributes:
        requests: Every request received, in order
        orders: order id -> row (status LIVE or CANCELED)
        chain_balances: On-chain truth, keyed by (asset_type, token_id)
        cached_balances: What the balance endpoint reports until updated
        key_exists: Make the create endpoint refuse (derive still works)
        refuse_handshake: Answer 401 on both handshake endpoints
        page_size: Rows per /data/orders page
    """

    def __init__(self, chain_id: int = 137):
        self.chain_id = chain_id
        self.requests: List[httpx.Request] = []
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.chain_balances: Dict[Tuple[str, str], int] = {}
        self.cached_balances: Dict[Tuple[str, str], int] = {}
        self.key_exists = False
        self.refuse_handshake = False
        self.page_size = 2
        self.books: Dict[str, Dict[str, Any]] = {}
        self._failures: deque = deque()
        self._next_id = 1

    # === Test controls ===

    def fail_next(self, status: int = 500, body: Any = None, headers: Optional[Dict[str, str]] = None) -> None:
        """Answer the next request with this status."""
        self._failures.append((status, body, headers or {}))

    def raise_next(self, exc: Exception) -> None:
        """Raise this transport exception on the next request."""
        self._failures.append(exc)

    def add_order(self, asset_id: str = "123", market: str = "0xmarket", status: str = "LIVE") -> str:
        order_id = f"0x{self._next_id:064x}"
        self._next_id += 1
        self.orders[order_id] = {
            "id": order_id,
            "status": status,
            "market": market,
            "asset_id": asset_id,
            "side": "BUY",
            "price": "0.55",
            "original_size": "10",
            "size_matched": "0",
            "order_type": "GTC",
            "created_at": 1700000000 + self._next_id,
        }
        return order_id

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    # === Dispatch ===

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self._failures:
            failure = self._failures.popleft()
            if isinstance(failure, Exception):
                raise failure
            status, body, headers = failure
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body, headers=headers)
            return httpx.Response(status, text=body or "", headers=headers)

        path = request.url.path
        if path in ("/auth/api-key", "/auth/derive-api-key"):
            return self._handshake(request)
        if path == "/time":
            return httpx.Response(200, json=TEST_TIMESTAMP)
        if path == "/book":
            return self._book(request)

        if path in AUTHED_PATHS:
            if not self._check_l2(request):
                return httpx.Response(401, json={"error": "Unauthorized/Invalid api key"})
            handler = {
                ("POST", "/order"): self._post_order,
                ("DELETE", "/order"): self._cancel_one,
                ("DELETE", "/orders"): self._cancel_many,
                ("DELETE", "/cancel-all"): self._cancel_all,
                ("GET", "/data/orders"): self._list_orders,
                ("GET", "/balance-allowance"): self._balance,
                ("GET", "/balance-allowance/update"): self._update_balance,
            }.get((request.method, path))
            if handler is not None:
                return handler(request)

        return httpx.Response(404, json={"error": "not found"})

    # === Auth ===

    def _handshake(self, request: httpx.Request) -> httpx.Response:
        headers = request.headers
        if self.refuse_handshake:
            return httpx.Response(401, json={"error": "Invalid L1 Request headers"})

        typed_data = {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                ],
                "ClobAuth": [
                    {"name": "address", "type": "address"},
                    {"name": "timestamp", "type": "string"},
                    {"name": "nonce", "type": "uint256"},
                    {"name": "message", "type": "string"},
                ],
            },
            "primaryType": "ClobAuth",
            "domain": {"name": "ClobAuthDomain", "version": "1", "chainId": self.chain_id},
            "message": {
                "address": headers["POLY_ADDRESS"],
                "timestamp": headers["POLY_TIMESTAMP"],
                "nonce": int(headers["POLY_NONCE"]),
                "message": "This message attests that I control the given wallet",
            },
        }
        recovered = Account.recover_message(
            encode_typed_data(full_message=typed_data), signature=headers["POLY_SIGNATURE"]
        )
        if recovered != headers["POLY_ADDRESS"]:
            return httpx.Response(401, json={"error": "Invalid L1 Request headers"})

        if request.url.path == "/auth/api-key" and self.key_exists:
            return httpx.Response(400, json={"error": "Could not create api key"})
        return httpx.Response(
            200, json={"apiKey": API_KEY, "secret": API_SECRET, "passphrase": API_PASSPHRASE}
        )

    def _check_l2(self, request: httpx.Request) -> bool:
        headers = request.headers
        if headers.get("POLY_API_KEY") != API_KEY or headers.get("POLY_PASSPHRASE") != API_PASSPHRASE:
            return False
        message = headers["POLY_TIMESTAMP"] + request.method + request.url.path + request.content.decode()
        expected = base64.urlsafe_b64encode(
            hmac.new(base64.urlsafe_b64decode(API_SECRET), message.encode(), hashlib.sha256).digest()
        ).decode()
        return hmac.compare_digest(expected, headers.get("POLY_SIGNATURE", ""))

    # === Market data ===

    def _book(self, request: httpx.Request) -> httpx.Response:
        token_id = request.url.params.get("token_id")
        book = self.books.get(token_id)
        if book is None:
            return httpx.Response(404, json={"error": "No orderbook exists for the requested token id"})
        return httpx.Response(200, json=book)

    # === Orders ===

    def _post_order(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        order = payload["order"]
        order_id = self.add_order(asset_id=order["tokenId"])
        self.orders[order_id]["side"] = order["side"]
        self.orders[order_id]["payload"] = payload
        return httpx.Response(
            200,
            json={
                "success": True,
                "errorMsg": "",
                "orderID": order_id,
                "status": "live",
                "transactionsHashes": [],
            },
        )

    def _cancel(self, order_ids: List[str]) -> httpx.Response:
        canceled, not_canceled = [], {}
        for order_id in order_ids:
            row = self.orders.get(order_id)
            if row is None:
                not_canceled[order_id] = "order not found"
            elif row["status"] != "LIVE":
                not_canceled[order_id] = "order already canceled or matched"
            else:
                row["status"] = "CANCELED"
                canceled.append(order_id)
        return httpx.Response(200, json={"canceled": canceled, "not_canceled": not_canceled})

    def _cancel_one(self, request: httpx.Request) -> httpx.Response:
        return self._cancel([json.loads(request.content)["orderID"]])

    def _cancel_many(self, request: httpx.Request) -> httpx.Response:
        return self._cancel(json.loads(request.content))

    def _cancel_all(self, request: httpx.Request) -> httpx.Response:
        return self._cancel([i for i, row in self.orders.items() if row["status"] == "LIVE"])

    def _list_orders(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        rows = [
            {k: v for k, v in row.items() if k != "payload"}
            for row in self.orders.values()
            if row["status"] == "LIVE"
            and (not params.get("id") or row["id"] == params["id"])
            and (not params.get("market") or row["market"] == params["market"])
            and (not params.get("asset_id") or row["asset_id"] == params["asset_id"])
        ]
        offset = _offset(params.get("next_cursor"))
        page = rows[offset:offset + self.page_size]
        end = offset + self.page_size
        next_cursor = _cursor(end) if end < len(rows) else "LTE="
        return httpx.Response(200, json={"data": page, "next_cursor": next_cursor, "limit": self.page_size, "count": len(page)})

    # === Balances ===

    def _balance_key(self, request: httpx.Request) -> Tuple[str, str]:
        params = request.url.params
        return params["asset_type"], params.get("token_id", "")

    def _balance(self, request: httpx.Request) -> httpx.Response:
        balance = self.cached_balances.get(self._balance_key(request), 0)
        return httpx.Response(
            200,
            json={
                "balance": str(balance),
                "allowances": {
                    "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8a8EF69": "0",
                    "0xC5d563A36AE78145C45a50134d48A1215220f80a": str(balance * 10),
                },
            },
        )

    def _update_balance(self, request: httpx.Request) -> httpx.Response:
        key = self._balance_key(request)
        self.cached_balances[key] = self.chain_balances.get(key, 0)
        return httpx.Response(200)


@pytest.fixture
def exchange():
    return FakeExchange()


@pytest.fixture
def signer():
    return LocalSigner.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def config():
    return ClientConfig()


@pytest_asyncio.fixture
async def public_client(exchange, config):
    client = ClobClient(config, transport=httpx.MockTransport(exchange.handle))
    async with client:
        yield client


@pytest_asyncio.fixture
async def client(public_client, signer):
    return await public_client.authenticate(signer, AuthOptions(timestamp=TEST_TIMESTAMP))
