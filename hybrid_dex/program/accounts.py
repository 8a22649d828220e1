"""Account serialization for the Hybrid DEX SDK.

Every account is an 8-byte Anchor discriminator followed by the Borsh
encoding of its fields. Anchor allocates ``8 + size_of::<T>()`` bytes, which
can exceed the Borsh length (alignment padding, book capacity), so decoding
accepts trailing bytes past the layout but never fewer.
"""

import struct
from dataclasses import dataclass
from typing import Callable, Dict, List, Type

from .constants import (
    BOOK_DISCRIMINATOR,
    BOOK_HEADER_SIZE,
    DISCRIMINATOR_SIZE,
    GLOBAL_CONFIG_DISCRIMINATOR,
    GLOBAL_CONFIG_SIZE,
    MARKET_DISCRIMINATOR,
    MARKET_NAME_LEN,
    MARKET_SIZE,
    OPENED_ORDER_SIZE,
    USER_MARKET_ORDERS_DISCRIMINATOR,
    USER_MARKET_ORDERS_SIZE,
)
from .errors import InvalidDiscriminatorError, MalformedAccountError
from .types import (
    Account,
    AccountKind,
    Book,
    GlobalConfig,
    Market,
    OpenedOrder,
    Side,
    UserMarketOrders,
)
from .utils import (
    decode_i64,
    decode_pubkey,
    decode_string_fixed,
    decode_u128,
    decode_u32,
    decode_u64,
    decode_u8,
    encode_i64,
    encode_string_fixed,
    encode_u128,
    encode_u32,
    encode_u64,
    encode_u8,
)


def _validate_account(data: bytes, expected: bytes, size: int, name: str) -> None:
    """Validate discriminator and minimum length."""
    if len(data) < DISCRIMINATOR_SIZE:
        raise MalformedAccountError(name, f"data too short: {len(data)} bytes")
    actual = bytes(data[:DISCRIMINATOR_SIZE])
    if actual != expected:
        raise InvalidDiscriminatorError(name, expected, actual)
    if len(data) < size:
        raise MalformedAccountError(
            name, f"data too short: {len(data)} bytes (expected {size})"
        )


# ============================================================================
# GlobalConfig
# ============================================================================


def serialize_global_config(config: GlobalConfig) -> bytes:
    """Serialize a GlobalConfig account (88 bytes)."""
    data = bytearray()
    data.extend(GLOBAL_CONFIG_DISCRIMINATOR)
    data.extend(bytes(config.admin))
    data.extend(encode_u64(config.max_orders_per_user))
    data.extend(encode_u64(config.max_orders_per_book))
    data.extend(encode_u64(config.total_market_count))
    data.extend(encode_u64(config.market_seq_num))
    data.extend(encode_u128(config.extra))
    return bytes(data)


def deserialize_global_config(data: bytes) -> GlobalConfig:
    """Deserialize a GlobalConfig account.

    Layout (88 bytes):
    - [0..8]: discriminator (sha256("account:GlobalPool")[:8])
    - [8..40]: admin (Pubkey)
    - [40..48]: max_orders_per_user (u64 LE)
    - [48..56]: max_orders_per_book (u64 LE)
    - [56..64]: total_market_count (u64 LE)
    - [64..72]: market_seq_num (u64 LE)
    - [72..88]: extra (u128, reserved)
    """
    _validate_account(data, GLOBAL_CONFIG_DISCRIMINATOR, GLOBAL_CONFIG_SIZE, "GlobalConfig")

    return GlobalConfig(
        admin=decode_pubkey(data, 8),
        max_orders_per_user=decode_u64(data, 40),
        max_orders_per_book=decode_u64(data, 48),
        total_market_count=decode_u64(data, 56),
        market_seq_num=decode_u64(data, 64),
        extra=decode_u128(data, 72),
    )


# ============================================================================
# Market
# ============================================================================


def serialize_market(market: Market) -> bytes:
    """Serialize a Market account (242 bytes)."""
    data = bytearray()
    data.extend(MARKET_DISCRIMINATOR)
    data.extend(encode_u64(market.seed))
    data.extend(encode_string_fixed(market.name, MARKET_NAME_LEN))
    data.extend(bytes(market.market_authority))
    data.extend(bytes(market.base_mint))
    data.extend(bytes(market.quote_mint))
    data.extend(encode_u8(market.base_decimal))
    data.extend(encode_u8(market.quote_decimal))
    data.extend(bytes(market.bids))
    data.extend(bytes(market.asks))
    data.extend(encode_i64(market.created_at))
    data.extend(encode_u64(market.base_total_volume))
    data.extend(encode_u64(market.quote_total_volume))
    data.extend(encode_u64(market.order_seq_num))
    data.extend(encode_u128(market.extra))
    return bytes(data)


def deserialize_market(data: bytes) -> Market:
    """Deserialize a Market account.

    Layout (242 bytes, allocated 248):
    - [0..8]: discriminator
    - [8..16]: seed (u64 LE)
    - [16..32]: name (16 bytes, null padded UTF-8)
    - [32..64]: market_authority (Pubkey)
    - [64..96]: base_mint (Pubkey)
    - [96..128]: quote_mint (Pubkey)
    - [128]: base_decimal (u8)
    - [129]: quote_decimal (u8)
    - [130..162]: bids (Pubkey)
    - [162..194]: asks (Pubkey)
    - [194..202]: created_at (i64 LE)
    - [202..210]: base_total_volume (u64 LE)
    - [210..218]: quote_total_volume (u64 LE)
    - [218..226]: order_seq_num (u64 LE)
    - [226..242]: extra (u128, reserved)
    """
    _validate_account(data, MARKET_DISCRIMINATOR, MARKET_SIZE, "Market")

    try:
        name = decode_string_fixed(data, 16, MARKET_NAME_LEN)
    except UnicodeDecodeError as e:
        raise MalformedAccountError("Market", f"name is not valid UTF-8: {e}") from e

    return Market(
        seed=decode_u64(data, 8),
        name=name,
        market_authority=decode_pubkey(data, 32),
        base_mint=decode_pubkey(data, 64),
        quote_mint=decode_pubkey(data, 96),
        base_decimal=decode_u8(data, 128),
        quote_decimal=decode_u8(data, 129),
        bids=decode_pubkey(data, 130),
        asks=decode_pubkey(data, 162),
        created_at=decode_i64(data, 194),
        base_total_volume=decode_u64(data, 202),
        quote_total_volume=decode_u64(data, 210),
        order_seq_num=decode_u64(data, 218),
        extra=decode_u128(data, 226),
    )


# ============================================================================
# OpenedOrder / Book
# ============================================================================


def serialize_opened_order(order: OpenedOrder) -> bytes:
    """Serialize an OpenedOrder record (64 bytes)."""
    data = bytearray()
    data.extend(encode_u64(order.order_id))
    data.extend(bytes(order.owner))
    data.extend(encode_u64(order.price))
    data.extend(encode_u64(order.quantity))
    data.extend(encode_i64(order.created_at))
    return bytes(data)


def deserialize_opened_order(data: bytes, offset: int = 0) -> OpenedOrder:
    """Deserialize an OpenedOrder record.

    Layout (64 bytes):
    - [0..8]: order_id (u64 LE)
    - [8..40]: owner (Pubkey)
    - [40..48]: price (u64 LE)
    - [48..56]: quantity (u64 LE)
    - [56..64]: created_at (i64 LE)
    """
    if offset + OPENED_ORDER_SIZE > len(data):
        raise MalformedAccountError(
            "OpenedOrder",
            f"need {OPENED_ORDER_SIZE} bytes at offset {offset}, have {len(data) - offset}",
        )
    return OpenedOrder(
        order_id=decode_u64(data, offset),
        owner=decode_pubkey(data, offset + 8),
        price=decode_u64(data, offset + 40),
        quantity=decode_u64(data, offset + 48),
        created_at=decode_i64(data, offset + 56),
    )


def serialize_book(book: Book) -> bytes:
    """Serialize a Book account (53 + 64 * len(orders) bytes)."""
    data = bytearray()
    data.extend(BOOK_DISCRIMINATOR)
    data.extend(encode_u8(book.side))
    data.extend(bytes(book.market))
    data.extend(encode_u64(book.orders_count))
    data.extend(encode_u32(len(book.orders)))
    for order in book.orders:
        data.extend(serialize_opened_order(order))
    return bytes(data)


def deserialize_book(data: bytes) -> Book:
    """Deserialize a Book account.

    Layout (53 + 64 * n bytes):
    - [0..8]: discriminator
    - [8]: side (u8: 0=Bid, 1=Ask)
    - [9..41]: market (Pubkey)
    - [41..49]: orders_count (u64 LE)
    - [49..53]: orders length n (u32 LE)
    - [53..]: n x OpenedOrder (64 bytes each)
    """
    _validate_account(data, BOOK_DISCRIMINATOR, BOOK_HEADER_SIZE, "Book")

    side_raw = decode_u8(data, 8)
    try:
        side = Side(side_raw)
    except ValueError:
        raise MalformedAccountError("Book", f"unknown side {side_raw}") from None

    orders_count = decode_u64(data, 41)
    length = decode_u32(data, 49)
    end = BOOK_HEADER_SIZE + length * OPENED_ORDER_SIZE
    if end > len(data):
        raise MalformedAccountError(
            "Book", f"{length} orders need {end} bytes, have {len(data)}"
        )
    if orders_count != length:
        raise MalformedAccountError(
            "Book", f"orders_count {orders_count} does not match {length} orders"
        )

    orders: List[OpenedOrder] = [
        deserialize_opened_order(data, BOOK_HEADER_SIZE + i * OPENED_ORDER_SIZE)
        for i in range(length)
    ]

    return Book(
        side=side,
        market=decode_pubkey(data, 9),
        orders_count=orders_count,
        orders=orders,
    )


# ============================================================================
# UserMarketOrders
# ============================================================================


def serialize_user_market_orders(orders: UserMarketOrders) -> bytes:
    """Serialize a UserMarketOrders account (128 bytes)."""
    data = bytearray()
    data.extend(USER_MARKET_ORDERS_DISCRIMINATOR)
    data.extend(bytes(orders.address))
    data.extend(bytes(orders.market))
    data.extend(encode_u64(orders.opened_orders_count))
    data.extend(encode_u64(orders.base_deposit_total))
    data.extend(encode_u64(orders.quote_deposit_total))
    data.extend(encode_u64(orders.base_total_volume))
    data.extend(encode_u64(orders.quote_total_volume))
    data.extend(encode_u128(orders.extra))
    return bytes(data)


def deserialize_user_market_orders(data: bytes) -> UserMarketOrders:
    """Deserialize a UserMarketOrders account.

    Layout (128 bytes):
    - [0..8]: discriminator
    - [8..40]: address (Pubkey)
    - [40..72]: market (Pubkey)
    - [72..80]: opened_orders_count (u64 LE)
    - [80..88]: base_deposit_total (u64 LE)
    - [88..96]: quote_deposit_total (u64 LE)
    - [96..104]: base_total_volume (u64 LE)
    - [104..112]: quote_total_volume (u64 LE)
    - [112..128]: extra (u128, reserved)
    """
    _validate_account(
        data, USER_MARKET_ORDERS_DISCRIMINATOR, USER_MARKET_ORDERS_SIZE, "UserMarketOrders"
    )

    return UserMarketOrders(
        address=decode_pubkey(data, 8),
        market=decode_pubkey(data, 40),
        opened_orders_count=decode_u64(data, 72),
        base_deposit_total=decode_u64(data, 80),
        quote_deposit_total=decode_u64(data, 88),
        base_total_volume=decode_u64(data, 96),
        quote_total_volume=decode_u64(data, 104),
        extra=decode_u128(data, 112),
    )


# ============================================================================
# Kind registry
# ============================================================================


@dataclass(frozen=True)
class AccountCodec:
    """Discriminator, entity type and codec functions for one account kind."""

    kind: AccountKind
    discriminator: bytes
    entity: Type
    serialize: Callable[[Account], bytes]
    deserialize: Callable[[bytes], Account]


ACCOUNT_CODECS: Dict[AccountKind, AccountCodec] = {
    AccountKind.GLOBAL_CONFIG: AccountCodec(
        AccountKind.GLOBAL_CONFIG,
        GLOBAL_CONFIG_DISCRIMINATOR,
        GlobalConfig,
        serialize_global_config,
        deserialize_global_config,
    ),
    AccountKind.MARKET: AccountCodec(
        AccountKind.MARKET,
        MARKET_DISCRIMINATOR,
        Market,
        serialize_market,
        deserialize_market,
    ),
    AccountKind.BOOK: AccountCodec(
        AccountKind.BOOK,
        BOOK_DISCRIMINATOR,
        Book,
        serialize_book,
        deserialize_book,
    ),
    AccountKind.USER_MARKET_ORDERS: AccountCodec(
        AccountKind.USER_MARKET_ORDERS,
        USER_MARKET_ORDERS_DISCRIMINATOR,
        UserMarketOrders,
        serialize_user_market_orders,
        deserialize_user_market_orders,
    ),
}


def kind_of(account: Account) -> AccountKind:
    """Return the kind of an account entity."""
    for codec in ACCOUNT_CODECS.values():
        if type(account) is codec.entity:
            return codec.kind
    raise TypeError(f"Not a program account: {type(account).__name__}")


def encode_account(account: Account) -> bytes:
    """Serialize any program account entity."""
    return ACCOUNT_CODECS[kind_of(account)].serialize(account)


def decode_account(kind: AccountKind, data: bytes) -> Account:
    """Deserialize account data as the requested kind.

    Raises:
        MalformedAccountError: If the data is not a well-formed ``kind`` account
    """
    try:
        return ACCOUNT_CODECS[kind].deserialize(bytes(data))
    except struct.error as e:
        raise MalformedAccountError(kind.value, str(e)) from e
