"""On-chain program interaction module for the Hybrid DEX.

This module provides the client and utilities for interacting with
the Hybrid DEX order book program on Solana.
"""

from .accounts import (
    ACCOUNT_CODECS,
    AccountCodec,
    decode_account,
    deserialize_book,
    deserialize_global_config,
    deserialize_market,
    deserialize_opened_order,
    deserialize_user_market_orders,
    encode_account,
    kind_of,
    serialize_book,
    serialize_global_config,
    serialize_market,
    serialize_opened_order,
    serialize_user_market_orders,
)
from .client import HybridDexClient, market_filters
from .constants import (
    DEFAULT_MARKET_SEED_WIDTH,
    PROGRAM_ID,
    SUPPORTED_MARKET_SEED_WIDTHS,
)
from .errors import (
    AccountExistsError,
    AccountNotFoundError,
    CapacityExceededError,
    HybridDexError,
    InvalidAmountError,
    InvalidDiscriminatorError,
    InvalidNameError,
    InvalidSeedsError,
    InvalidSideError,
    MalformedAccountError,
    NoValidBumpError,
    OrderNotFoundError,
    RemoteRejectedError,
    UnauthorizedError,
)
from .instructions import (
    build_cancel_order_instruction,
    build_change_config_instruction,
    build_close_market_instruction,
    build_create_market_instruction,
    build_create_open_orders_instruction,
    build_initialize_instruction,
    build_partial_take_order_instruction,
    build_place_order_instruction,
    build_take_order_instruction,
    build_transfer_admin_instruction,
)
from .pda import (
    derive,
    encode_market_seed,
    get_asks_pda,
    get_bids_pda,
    get_book_pda,
    get_global_config_pda,
    get_market_pda,
    get_user_market_orders_pda,
)
from .session import KeypairError, Session, load_keypair, resolve_pubkey
from .types import (
    AccountKind,
    Book,
    CancelOrderParams,
    GlobalConfig,
    Market,
    OpenedOrder,
    PartialTakeOrderParams,
    PlaceOrderParams,
    Side,
    SideLayout,
    TakeOrderParams,
    UserMarketOrders,
    side_layout,
)

__all__ = [
    # Client
    "HybridDexClient",
    "Session",
    "market_filters",
    "load_keypair",
    "resolve_pubkey",
    # Constants
    "PROGRAM_ID",
    "DEFAULT_MARKET_SEED_WIDTH",
    "SUPPORTED_MARKET_SEED_WIDTHS",
    # Accounts
    "ACCOUNT_CODECS",
    "AccountCodec",
    "encode_account",
    "decode_account",
    "kind_of",
    "serialize_global_config",
    "deserialize_global_config",
    "serialize_market",
    "deserialize_market",
    "serialize_opened_order",
    "deserialize_opened_order",
    "serialize_book",
    "deserialize_book",
    "serialize_user_market_orders",
    "deserialize_user_market_orders",
    # Instructions
    "build_initialize_instruction",
    "build_transfer_admin_instruction",
    "build_change_config_instruction",
    "build_create_market_instruction",
    "build_close_market_instruction",
    "build_create_open_orders_instruction",
    "build_place_order_instruction",
    "build_cancel_order_instruction",
    "build_take_order_instruction",
    "build_partial_take_order_instruction",
    # PDAs
    "derive",
    "encode_market_seed",
    "get_global_config_pda",
    "get_market_pda",
    "get_book_pda",
    "get_bids_pda",
    "get_asks_pda",
    "get_user_market_orders_pda",
    # Types
    "AccountKind",
    "Side",
    "SideLayout",
    "side_layout",
    "GlobalConfig",
    "Market",
    "Book",
    "OpenedOrder",
    "UserMarketOrders",
    "PlaceOrderParams",
    "CancelOrderParams",
    "TakeOrderParams",
    "PartialTakeOrderParams",
    # Errors
    "HybridDexError",
    "InvalidSeedsError",
    "NoValidBumpError",
    "MalformedAccountError",
    "InvalidDiscriminatorError",
    "AccountNotFoundError",
    "OrderNotFoundError",
    "AccountExistsError",
    "CapacityExceededError",
    "InvalidAmountError",
    "InvalidSideError",
    "InvalidNameError",
    "UnauthorizedError",
    "RemoteRejectedError",
    "KeypairError",
]
