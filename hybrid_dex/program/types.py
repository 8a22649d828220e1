"""Type definitions for the Hybrid DEX program module."""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import List, Optional, Tuple, Union

from solders.pubkey import Pubkey

from .constants import (
    INSTRUCTION_CANCEL_BUY_ORDER,
    INSTRUCTION_CANCEL_SELL_ORDER,
    INSTRUCTION_PARTIAL_TAKE_BUY_ORDER,
    INSTRUCTION_PARTIAL_TAKE_SELL_ORDER,
    INSTRUCTION_PLACE_BUY_ORDER,
    INSTRUCTION_PLACE_SELL_ORDER,
    INSTRUCTION_TAKE_BUY_ORDER,
    INSTRUCTION_TAKE_SELL_ORDER,
    SEED_ASK_BOOK,
    SEED_BID_BOOK,
)
from .errors import InvalidAmountError, InvalidSideError, OrderNotFoundError


class Side(IntEnum):
    """Side of an order in the order book."""

    BID = 0  # Maker escrows quote tokens, wants base tokens
    ASK = 1  # Maker escrows base tokens, wants quote tokens

    @classmethod
    def parse(cls, value: Union["Side", int, str]) -> "Side":
        """Coerce a user-supplied side ("bid"/"buy", "ask"/"sell", 0, 1)."""
        if isinstance(value, Side):
            return value
        if isinstance(value, str):
            side = _SIDE_ALIASES.get(value.strip().lower())
            if side is None:
                raise InvalidSideError(f"unknown side {value!r}")
            return side
        try:
            return cls(value)
        except ValueError:
            raise InvalidSideError(f"unknown side {value!r}") from None

    @property
    def layout(self) -> "SideLayout":
        """Per-side layout; the single place side-dependent behaviour lives."""
        return SIDE_LAYOUTS[self]


_SIDE_ALIASES = {
    "bid": Side.BID,
    "buy": Side.BID,
    "ask": Side.ASK,
    "sell": Side.ASK,
}


# ============================================================================
# Account Data
# ============================================================================


@dataclass
class GlobalConfig:
    """Global configuration account data (on-chain ``GlobalPool``)."""

    admin: Pubkey
    max_orders_per_user: int
    max_orders_per_book: int
    total_market_count: int
    market_seq_num: int
    extra: int = 0


@dataclass
class Market:
    """Market account data."""

    seed: int
    name: str
    market_authority: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_decimal: int
    quote_decimal: int
    bids: Pubkey
    asks: Pubkey
    created_at: int
    base_total_volume: int
    quote_total_volume: int
    order_seq_num: int
    extra: int = 0


@dataclass
class OpenedOrder:
    """An order resting in a book. Price uses the quote token decimals."""

    order_id: int
    owner: Pubkey
    price: int
    quantity: int
    created_at: int


@dataclass
class Book:
    """One side of a market's order book.

    ``orders`` is kept in price-time priority: best price first, and among
    equal prices the lower (earlier) order id first.
    """

    side: Side
    market: Pubkey
    orders_count: int = 0
    orders: List[OpenedOrder] = field(default_factory=list)

    def insert_order(self, order: OpenedOrder) -> int:
        """Insert an order at its price-time position and return that index."""
        key = self.side.layout.priority(order)
        index = len(self.orders)
        for i, existing in enumerate(self.orders):
            if self.side.layout.priority(existing) > key:
                index = i
                break
        self.orders.insert(index, order)
        self.orders_count += 1
        return index

    def find_order(self, order_id: int) -> Optional[OpenedOrder]:
        """Return the order with ``order_id``, or None if it is not live."""
        for order in self.orders:
            if order.order_id == order_id:
                return order
        return None

    def position_of(self, order_id: int) -> int:
        """Return the index of an order in the book.

        Raises:
            OrderNotFoundError: If the order is not in the book
        """
        for i, order in enumerate(self.orders):
            if order.order_id == order_id:
                return i
        raise OrderNotFoundError(order_id, str(self.market))

    def remove_order(self, order_id: int) -> OpenedOrder:
        """Remove and return an order."""
        index = self.position_of(order_id)
        self.orders_count -= 1
        return self.orders.pop(index)

    def reduce_order(self, order_id: int, amount: int) -> OpenedOrder:
        """Decrease an order's remaining quantity without moving it.

        Raises:
            InvalidAmountError: Unless 0 < amount < remaining quantity
        """
        index = self.position_of(order_id)
        order = self.orders[index]
        if not 0 < amount < order.quantity:
            raise InvalidAmountError(
                f"partial amount must be in (0, {order.quantity}), got {amount}"
            )
        reduced = replace(order, quantity=order.quantity - amount)
        self.orders[index] = reduced
        return reduced

    def is_price_time_ordered(self) -> bool:
        """Check that the orders are in price-time priority."""
        keys = [self.side.layout.priority(order) for order in self.orders]
        return all(a < b for a, b in zip(keys, keys[1:]))

    def orders_of(self, owner: Pubkey) -> List[OpenedOrder]:
        """Live orders placed by ``owner``."""
        return [order for order in self.orders if order.owner == owner]


@dataclass
class UserMarketOrders:
    """Per-user, per-market order state account data."""

    address: Pubkey
    market: Pubkey
    opened_orders_count: int = 0
    base_deposit_total: int = 0
    quote_deposit_total: int = 0
    base_total_volume: int = 0
    quote_total_volume: int = 0
    extra: int = 0


Account = Union[GlobalConfig, Market, Book, UserMarketOrders]


class AccountKind(Enum):
    """Closed set of program account kinds."""

    GLOBAL_CONFIG = "GlobalConfig"
    MARKET = "Market"
    BOOK = "Book"
    USER_MARKET_ORDERS = "UserMarketOrders"


# ============================================================================
# Side dispatch
# ============================================================================


@dataclass(frozen=True)
class SideLayout:
    """Everything that differs between the bid and the ask side.

    A bid escrows ``quantity`` quote tokens and is filled with base tokens;
    an ask escrows ``quantity`` base tokens and is filled with quote tokens.
    """

    side: Side
    label: str
    book_seed: bytes
    escrow_mint_field: str
    counter_mint_field: str
    escrow_decimal_field: str
    place_instruction: str
    cancel_instruction: str
    take_instruction: str
    partial_take_instruction: str
    price_direction: int  # -1: higher price first, 1: lower price first

    def escrow_mint(self, market: Market) -> Pubkey:
        """Mint the maker locks in the vault."""
        return getattr(market, self.escrow_mint_field)

    def counter_mint(self, market: Market) -> Pubkey:
        """Mint the taker pays the maker with."""
        return getattr(market, self.counter_mint_field)

    def escrow_decimals(self, market: Market) -> int:
        """Decimals of the escrowed mint, used to scale order quantities."""
        return getattr(market, self.escrow_decimal_field)

    def priority(self, order: OpenedOrder) -> Tuple[int, int]:
        """Sort key for price-time priority (smaller sorts first)."""
        return (self.price_direction * order.price, order.order_id)


SIDE_LAYOUTS = {
    Side.BID: SideLayout(
        side=Side.BID,
        label="bid",
        book_seed=SEED_BID_BOOK,
        escrow_mint_field="quote_mint",
        counter_mint_field="base_mint",
        escrow_decimal_field="quote_decimal",
        place_instruction=INSTRUCTION_PLACE_BUY_ORDER,
        cancel_instruction=INSTRUCTION_CANCEL_BUY_ORDER,
        take_instruction=INSTRUCTION_TAKE_BUY_ORDER,
        partial_take_instruction=INSTRUCTION_PARTIAL_TAKE_BUY_ORDER,
        price_direction=-1,
    ),
    Side.ASK: SideLayout(
        side=Side.ASK,
        label="ask",
        book_seed=SEED_ASK_BOOK,
        escrow_mint_field="base_mint",
        counter_mint_field="quote_mint",
        escrow_decimal_field="base_decimal",
        place_instruction=INSTRUCTION_PLACE_SELL_ORDER,
        cancel_instruction=INSTRUCTION_CANCEL_SELL_ORDER,
        take_instruction=INSTRUCTION_TAKE_SELL_ORDER,
        partial_take_instruction=INSTRUCTION_PARTIAL_TAKE_SELL_ORDER,
        price_direction=1,
    ),
}


# ============================================================================
# Parameter types for client methods
# ============================================================================


@dataclass
class PlaceOrderParams:
    """Parameters for placing an order."""

    maker: Pubkey
    market: Pubkey
    side: Side
    price: int
    quantity: int


@dataclass
class CancelOrderParams:
    """Parameters for cancelling an order."""

    maker: Pubkey
    market: Pubkey
    side: Side
    order_id: int


@dataclass
class TakeOrderParams:
    """Parameters for taking an order in full."""

    taker: Pubkey
    maker: Pubkey
    market: Pubkey
    side: Side
    order_id: int


@dataclass
class PartialTakeOrderParams:
    """Parameters for taking part of an order."""

    taker: Pubkey
    maker: Pubkey
    market: Pubkey
    side: Side
    order_id: int
    amount: int


def side_layout(side: Union[Side, int, str]) -> SideLayout:
    """Return the layout for a side, coercing user input first."""
    return SIDE_LAYOUTS[Side.parse(side)]
