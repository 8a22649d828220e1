"""Command-line interface for the Hybrid DEX.

Every state-changing subcommand builds a transaction through
:class:`HybridDexClient`, signs it with the configured keypair and waits for
confirmation. Read-only subcommands never load a keypair.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from solana.exceptions import SolanaRpcException
from solders.pubkey import Pubkey

from .config import ClientConfig
from .program.client import HybridDexClient, market_filters
from .program.errors import HybridDexError, OrderNotFoundError
from .program.pda import get_book_pda
from .program.session import Session, resolve_pubkey
from .program.types import (
    CancelOrderParams,
    PartialTakeOrderParams,
    PlaceOrderParams,
    Side,
    TakeOrderParams,
)
from .shared.scaling import ScalingError, format_amount, scale_amount

logger = logging.getLogger(__name__)

READ_ONLY_COMMANDS = {"status", "market", "markets", "book", "user-orders"}


def _pubkey(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a valid address: {value!r}") from None


def _side(value: str) -> Side:
    try:
        return Side.parse(value)
    except HybridDexError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


async def cmd_init(client: HybridDexClient, args: argparse.Namespace) -> None:
    tx = await client.initialize(args.max_orders_per_user, args.max_orders_per_book)
    signature = await client.send(tx)
    print(f"Initialized global config: {signature}")


async def cmd_transfer_admin(client: HybridDexClient, args: argparse.Namespace) -> None:
    tx = await client.transfer_admin(args.new_admin)
    signature = await client.send(tx)
    print(f"Transferred admin to {resolve_pubkey(args.new_admin)}: {signature}")


async def cmd_change_config(client: HybridDexClient, args: argparse.Namespace) -> None:
    tx = await client.change_config(args.max_orders_per_user, args.max_orders_per_book)
    signature = await client.send(tx)
    print(f"Updated global config: {signature}")


async def cmd_status(client: HybridDexClient, args: argparse.Namespace) -> None:
    config = await client.get_global_config()
    print(f"program:             {client.program_id}")
    print(f"admin:               {config.admin}")
    print(f"max orders per user: {config.max_orders_per_user}")
    print(f"max orders per book: {config.max_orders_per_book}")
    print(f"markets:             {config.total_market_count}")
    print(f"next market seq:     {config.market_seq_num}")


# ---------------------------------------------------------------------------
# Market commands
# ---------------------------------------------------------------------------


async def cmd_create_market(client: HybridDexClient, args: argparse.Namespace) -> None:
    market = await client.get_next_market_address()
    tx = await client.create_market(args.base_mint, args.quote_mint, args.name)
    signature = await client.send(tx)
    print(f"Created market {args.name!r} at {market}: {signature}")


async def cmd_close_market(client: HybridDexClient, args: argparse.Namespace) -> None:
    tx = await client.close_market(args.market)
    signature = await client.send(tx)
    print(f"Closed market {args.market}: {signature}")


async def cmd_create_open_orders(client: HybridDexClient, args: argparse.Namespace) -> None:
    tx = await client.create_open_orders(args.market)
    signature = await client.send(tx)
    print(f"Created order record for {client.session.identity}: {signature}")


async def cmd_market(client: HybridDexClient, args: argparse.Namespace) -> None:
    market = await client.get_market(args.market)
    print(f"market:        {args.market}")
    print(f"seq:           {market.seed}")
    print(f"name:          {market.name}")
    print(f"authority:     {market.market_authority}")
    print(f"base mint:     {market.base_mint} ({market.base_decimal} decimals)")
    print(f"quote mint:    {market.quote_mint} ({market.quote_decimal} decimals)")
    print(f"bids:          {market.bids}")
    print(f"asks:          {market.asks}")
    print(f"created at:    {market.created_at}")
    print(f"base volume:   {format_amount(market.base_total_volume, market.base_decimal)}")
    print(f"quote volume:  {format_amount(market.quote_total_volume, market.quote_decimal)}")
    print(f"orders placed: {market.order_seq_num}")


async def cmd_markets(client: HybridDexClient, args: argparse.Namespace) -> None:
    filters = market_filters(
        base_mint=args.base_mint,
        quote_mint=args.quote_mint,
        authority=args.authority,
    )
    markets = await client.get_markets(filters)
    if not markets:
        print("No markets found")
        return
    for address, market in markets:
        print(f"#{market.seed}\t{address}\t{market.name}\t{market.base_mint}/{market.quote_mint}")


async def cmd_book(client: HybridDexClient, args: argparse.Namespace) -> None:
    market = await client.get_market(args.market)
    sides = [args.side] if args.side is not None else list(Side)
    for side in sides:
        book = await client.get_book(args.market, side)
        escrow_decimals = side.layout.escrow_decimals(market)
        print(f"{side.layout.label}s ({book.orders_count}):")
        for order in book.orders:
            print(
                f"  #{order.order_id}\t"
                f"price {format_amount(order.price, market.quote_decimal)}\t"
                f"quantity {format_amount(order.quantity, escrow_decimals)}\t"
                f"{order.owner}"
            )


async def cmd_user_orders(client: HybridDexClient, args: argparse.Namespace) -> None:
    owner = args.owner or client.session.identity
    market = await client.get_market(args.market)
    record = await client.get_user_market_orders(args.market, owner)
    print(f"owner:         {owner}")
    print(f"open orders:   {record.opened_orders_count}")
    print(f"base escrow:   {format_amount(record.base_deposit_total, market.base_decimal)}")
    print(f"quote escrow:  {format_amount(record.quote_deposit_total, market.quote_decimal)}")
    print(f"base volume:   {format_amount(record.base_total_volume, market.base_decimal)}")
    print(f"quote volume:  {format_amount(record.quote_total_volume, market.quote_decimal)}")
    for side, order in await client.get_open_orders(args.market, owner):
        print(
            f"  {side.layout.label} #{order.order_id}\t"
            f"price {format_amount(order.price, market.quote_decimal)}\t"
            f"quantity {format_amount(order.quantity, side.layout.escrow_decimals(market))}"
        )


# ---------------------------------------------------------------------------
# Order commands
# ---------------------------------------------------------------------------


async def cmd_place_order(client: HybridDexClient, args: argparse.Namespace) -> None:
    market = await client.get_market(args.market)
    params = PlaceOrderParams(
        maker=client.session.identity,
        market=args.market,
        side=args.side,
        price=scale_amount(args.price, market.quote_decimal),
        quantity=scale_amount(args.quantity, args.side.layout.escrow_decimals(market)),
    )
    tx = await client.place_order(params)
    signature = await client.send(tx)
    print(f"Placed {args.side.layout.label} #{market.order_seq_num}: {signature}")


async def cmd_cancel_order(client: HybridDexClient, args: argparse.Namespace) -> None:
    params = CancelOrderParams(
        maker=client.session.identity,
        market=args.market,
        side=args.side,
        order_id=args.order_id,
    )
    tx = await client.cancel_order(params)
    signature = await client.send(tx)
    print(f"Cancelled {args.side.layout.label} #{args.order_id}: {signature}")


async def _order_maker(client: HybridDexClient, args: argparse.Namespace) -> Pubkey:
    if args.maker is not None:
        return args.maker
    book = await client.get_book(args.market, args.side)
    order = book.find_order(args.order_id)
    if order is None:
        book_address, _ = get_book_pda(args.side, args.market, client.program_id)
        raise OrderNotFoundError(args.order_id, str(book_address))
    return order.owner


async def cmd_take_order(client: HybridDexClient, args: argparse.Namespace) -> None:
    params = TakeOrderParams(
        taker=client.session.identity,
        maker=await _order_maker(client, args),
        market=args.market,
        side=args.side,
        order_id=args.order_id,
    )
    tx = await client.take_order(params)
    signature = await client.send(tx)
    print(f"Took {args.side.layout.label} #{args.order_id}: {signature}")


async def cmd_partial_take_order(client: HybridDexClient, args: argparse.Namespace) -> None:
    market = await client.get_market(args.market)
    params = PartialTakeOrderParams(
        taker=client.session.identity,
        maker=await _order_maker(client, args),
        market=args.market,
        side=args.side,
        order_id=args.order_id,
        amount=scale_amount(args.amount, args.side.layout.escrow_decimals(market)),
    )
    tx = await client.partial_take_order(params)
    signature = await client.send(tx)
    print(f"Partially took {args.side.layout.label} #{args.order_id}: {signature}")


# ---------------------------------------------------------------------------
# CLI parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="hybrid-dex",
        description="Hybrid DEX order book client",
    )
    parser.add_argument("--env", help="Cluster name (mainnet-beta, devnet, testnet, localnet)")
    parser.add_argument("--rpc", help="RPC URL (overrides --env)")
    parser.add_argument("--keypair", help="Signer keypair file")
    parser.add_argument("--program-id", type=_pubkey, help="Program id")
    parser.add_argument(
        "--market-seed-width",
        type=int,
        choices=[4, 8],
        help="Bytes of the market sequence number in market addresses",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    p_init = subparsers.add_parser("init", help="Create the global config")
    p_init.add_argument("--max-orders-per-user", type=int, required=True)
    p_init.add_argument("--max-orders-per-book", type=int, required=True)

    # transfer-admin
    p_transfer = subparsers.add_parser("transfer-admin", help="Hand admin rights to another wallet")
    p_transfer.add_argument("new_admin", help="Address or keyfile of the new admin")

    # change-config
    p_change = subparsers.add_parser("change-config", help="Update order limits")
    p_change.add_argument("--max-orders-per-user", type=int)
    p_change.add_argument("--max-orders-per-book", type=int)

    # create-market
    p_create = subparsers.add_parser("create-market", help="Create a market and its books")
    p_create.add_argument("--base-mint", type=_pubkey, required=True)
    p_create.add_argument("--quote-mint", type=_pubkey, required=True)
    p_create.add_argument("--name", required=True)

    # close-market
    p_close = subparsers.add_parser("close-market", help="Close a market and its books")
    p_close.add_argument("market", type=_pubkey)

    # create-open-orders
    p_open = subparsers.add_parser("create-open-orders", help="Create your order record")
    p_open.add_argument("market", type=_pubkey)

    # place-order
    p_place = subparsers.add_parser("place-order", help="Place a bid or ask")
    p_place.add_argument("market", type=_pubkey)
    p_place.add_argument("side", type=_side, help="bid/buy or ask/sell")
    p_place.add_argument("--price", required=True, help="Price in quote units")
    p_place.add_argument(
        "--quantity",
        required=True,
        help="Amount escrowed (quote units for a bid, base units for an ask)",
    )

    # cancel-order
    p_cancel = subparsers.add_parser("cancel-order", help="Cancel one of your orders")
    p_cancel.add_argument("market", type=_pubkey)
    p_cancel.add_argument("side", type=_side)
    p_cancel.add_argument("order_id", type=int)

    # take-order / partial-take-order
    p_take = subparsers.add_parser("take-order", help="Fill an order completely")
    p_partial = subparsers.add_parser("partial-take-order", help="Fill part of an order")
    for p in (p_take, p_partial):
        p.add_argument("market", type=_pubkey)
        p.add_argument("side", type=_side)
        p.add_argument("order_id", type=int)
        p.add_argument("--maker", type=_pubkey, help="Order owner (looked up if omitted)")
    p_partial.add_argument("--amount", required=True, help="Amount of the order to fill")

    # status
    subparsers.add_parser("status", help="Show the global config")

    # market
    p_market = subparsers.add_parser("market", help="Show a market")
    p_market.add_argument("market", type=_pubkey)

    # markets
    p_markets = subparsers.add_parser("markets", help="List markets")
    p_markets.add_argument("--base-mint", type=_pubkey)
    p_markets.add_argument("--quote-mint", type=_pubkey)
    p_markets.add_argument("--authority", type=_pubkey)

    # book
    p_book = subparsers.add_parser("book", help="Show a market's order book")
    p_book.add_argument("market", type=_pubkey)
    p_book.add_argument("--side", type=_side)

    # user-orders
    p_user = subparsers.add_parser("user-orders", help="Show a user's orders in a market")
    p_user.add_argument("market", type=_pubkey)
    p_user.add_argument("--owner", type=_pubkey, help="Defaults to the signer")

    return parser


COMMAND_HANDLERS = {
    "init": cmd_init,
    "transfer-admin": cmd_transfer_admin,
    "change-config": cmd_change_config,
    "create-market": cmd_create_market,
    "close-market": cmd_close_market,
    "create-open-orders": cmd_create_open_orders,
    "place-order": cmd_place_order,
    "cancel-order": cmd_cancel_order,
    "take-order": cmd_take_order,
    "partial-take-order": cmd_partial_take_order,
    "status": cmd_status,
    "market": cmd_market,
    "markets": cmd_markets,
    "book": cmd_book,
    "user-orders": cmd_user_orders,
}


def config_from_args(args: argparse.Namespace) -> ClientConfig:
    """Environment config overridden by command-line options."""
    config = ClientConfig.from_env()
    if args.env:
        config.with_cluster(args.env)
    if args.rpc:
        config.with_rpc_url(args.rpc)
    if args.keypair:
        config.with_keypair_path(args.keypair)
    if args.program_id is not None:
        config.with_program_id(args.program_id)
    if args.market_seed_width is not None:
        config.with_market_seed_width(args.market_seed_width)
    return config


def needs_signer(args: argparse.Namespace) -> bool:
    if args.command == "user-orders":
        return args.owner is None
    return args.command not in READ_ONLY_COMMANDS


async def run(args: argparse.Namespace) -> None:
    config = config_from_args(args)
    async with Session.from_config(config, load_signer=needs_signer(args)) as session:
        client = HybridDexClient(session)
        await COMMAND_HANDLERS[args.command](client, args)


def main(argv: Optional[List[str]] = None) -> int:
    """Parse args and dispatch to the handler. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(args))
    except (HybridDexError, ScalingError) as e:
        logger.debug("command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except SolanaRpcException as e:
        # solana-py wraps transport failures of every RPC request
        logger.debug("RPC request failed", exc_info=True)
        print(f"error: {e.error_msg}: {e.__cause__}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
