"""
Command line entry point.

Usage:
    python -m polymarket_clob check-auth            # Handshake + signed test order + balance
    python -m polymarket_clob book TOKEN_ID         # Order book snapshot
    python -m polymarket_clob balance [--token-id ID]
    python -m polymarket_clob orders [--market ID]
    python -m polymarket_clob cancel ORDER_ID
    python -m polymarket_clob cancel-all
    python -m polymarket_clob env-template [PATH]

Configuration comes from the environment / .env (see ``env-template``).
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .auth import AuthOptions
from .client import ClobClient
from .config import ClientConfig, create_env_template, get_private_key
from .errors import ClobError
from .logger import print_error, print_success, setup_logging
from .order_signer import recover_order_signer
from .signer import LocalSigner
from .types import AssetType, BalanceAllowanceQuery, OrderFilter, Side

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="polymarket_clob", description="Polymarket CLOB client")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", default=None, help="Also log to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check-auth", help="Authenticate and sign a test order (not submitted)")

    book = sub.add_parser("book", help="Show order book")
    book.add_argument("token_id")

    balance = sub.add_parser("balance", help="Show balance and allowance")
    balance.add_argument("--token-id", default=None, help="Conditional token (default: USDC collateral)")
    balance.add_argument("--refresh", action="store_true", help="Ask the exchange to refresh first")

    orders = sub.add_parser("orders", help="List open orders")
    orders.add_argument("--market", default=None)
    orders.add_argument("--asset-id", default=None)

    cancel = sub.add_parser("cancel", help="Cancel one order")
    cancel.add_argument("order_id")

    sub.add_parser("cancel-all", help="Cancel all open orders")

    template = sub.add_parser("env-template", help="Write a .env template")
    template.add_argument("path", nargs="?", default=".env.template")

    return parser


async def _authenticated(public: ClobClient) -> ClobClient:
    signer = LocalSigner.from_key(get_private_key())
    return await public.authenticate(signer, AuthOptions())


async def run(args: argparse.Namespace, config: ClientConfig) -> None:
    async with ClobClient(config) as public:
        if args.command == "book":
            book = await public.order_book(args.token_id)
            print(f"Order book {book.asset_id or args.token_id}")
            print(f"  Best bid: {book.best_bid}  Best ask: {book.best_ask}  Spread: {book.spread}")
            for level in sorted(book.asks, key=lambda l: l.price, reverse=True)[-5:]:
                print(f"  ASK {level.price:>8} x {level.size}")
            for level in sorted(book.bids, key=lambda l: l.price, reverse=True)[:5]:
                print(f"  BID {level.price:>8} x {level.size}")
            return

        client = await _authenticated(public)

        if args.command == "check-auth":
            print(f"  Wallet: {client.address}")
            print(f"  API key: {client.credentials!r}")
            # Signed locally only, never posted
            signed = await client.create_order("1", Side.BUY, "0.01", "1")
            recovered = recover_order_signer(signed)
            if recovered != client.address:
                raise ClobError(f"test order recovers to {recovered}, expected {client.address}")
            print(f"  Test order hash: {signed.order_hash_hex}")
            balance = await client.balance_allowance()
            print(f"  USDC balance: ${balance.balance_units:.6f}")
            print_success("Authentication successful")

        elif args.command == "balance":
            if args.token_id:
                query = BalanceAllowanceQuery(AssetType.CONDITIONAL, args.token_id)
            else:
                query = BalanceAllowanceQuery()
            if args.refresh:
                await client.update_balance_allowance(query)
            result = await client.balance_allowance(query)
            print(f"  {result.asset_type.value} balance: {result.balance_units} (allowance {result.allowance})")

        elif args.command == "orders":
            count = 0
            async for order in client.iter_orders(OrderFilter(market=args.market, asset_id=args.asset_id)):
                count += 1
                side = order.side.value if order.side else "?"
                print(
                    f"  {order.order_id}  {side:<4} {order.price} x {order.original_size} "
                    f"(matched {order.size_matched})  {order.status.value}"
                )
            print(f"{count} open order(s)")

        elif args.command == "cancel":
            result = await client.cancel_order(args.order_id)
            _print_cancel(result)

        elif args.command == "cancel-all":
            result = await client.cancel_all()
            _print_cancel(result)


def _print_cancel(result) -> None:
    for order_id in result.canceled:
        print(f"  cancelled {order_id}")
    for order_id, reason in result.not_canceled.items():
        print(f"  not cancelled {order_id}: {reason}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "env-template":
        create_env_template(args.path)
        return 0

    setup_logging(verbose=args.verbose, log_file=args.log_file)
    try:
        config = ClientConfig.from_env(args.env_file)
        asyncio.run(run(args, config))
    except (ClobError, ValueError) as e:
        print_error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
