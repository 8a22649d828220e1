"""Constants for the Hybrid DEX program module."""

import hashlib

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.sysvar import RENT as RENT_SYSVAR_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

# ============================================================================
# PROGRAM IDS
# ============================================================================

PROGRAM_ID = Pubkey.from_string("6z1NX1CodyGPbJ8sAVirasDsYgw1xSnkyjyprSnMfvRy")

# ============================================================================
# PDA SEEDS
# ============================================================================

SEED_GLOBAL_AUTHORITY = b"global-authority"
SEED_MARKET = b"market"
SEED_BID_BOOK = b"bid-book"
SEED_ASK_BOOK = b"ask-book"
SEED_USER_MARKET_ORDERS = b"user-market-book"

MAX_SEEDS = 16
MAX_SEED_LEN = 32

# Width of the little-endian market sequence number in the market seed
MARKET_SEED_WIDTH_U32 = 4
MARKET_SEED_WIDTH_U64 = 8
SUPPORTED_MARKET_SEED_WIDTHS = (MARKET_SEED_WIDTH_U32, MARKET_SEED_WIDTH_U64)
DEFAULT_MARKET_SEED_WIDTH = MARKET_SEED_WIDTH_U64

# ============================================================================
# ANCHOR DISCRIMINATORS
# ============================================================================


def anchor_discriminator(namespace: str, name: str) -> bytes:
    """First 8 bytes of sha256("<namespace>:<name>")."""
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:8]


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator for a Rust account struct name."""
    return anchor_discriminator("account", name)


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator for a snake_case handler name."""
    return anchor_discriminator("global", name)


DISCRIMINATOR_SIZE = 8

GLOBAL_CONFIG_DISCRIMINATOR = account_discriminator("GlobalPool")
MARKET_DISCRIMINATOR = account_discriminator("Market")
BOOK_DISCRIMINATOR = account_discriminator("Book")
USER_MARKET_ORDERS_DISCRIMINATOR = account_discriminator("UserMarketOrders")

# ============================================================================
# INSTRUCTION NAMES
# ============================================================================

INSTRUCTION_INITIALIZE = "initialize"
INSTRUCTION_TRANSFER_ADMIN = "transfer_admin"
INSTRUCTION_CHANGE_CONFIG = "change_config"
INSTRUCTION_CREATE_MARKET = "create_market"
INSTRUCTION_CLOSE_MARKET = "close_market"
INSTRUCTION_CREATE_OPEN_ORDERS = "create_open_orders"
INSTRUCTION_PLACE_BUY_ORDER = "place_buy_order"
INSTRUCTION_PLACE_SELL_ORDER = "place_sell_order"
INSTRUCTION_CANCEL_BUY_ORDER = "cancel_buy_order"
INSTRUCTION_CANCEL_SELL_ORDER = "cancel_sell_order"
INSTRUCTION_TAKE_BUY_ORDER = "take_buy_order"
INSTRUCTION_TAKE_SELL_ORDER = "take_sell_order"
INSTRUCTION_PARTIAL_TAKE_BUY_ORDER = "partial_take_buy_order"
INSTRUCTION_PARTIAL_TAKE_SELL_ORDER = "partial_take_sell_order"

# ============================================================================
# ACCOUNT LAYOUTS (serialized sizes, discriminator included)
# ============================================================================

MARKET_NAME_LEN = 16

# disc(8) + admin(32) + 4 x u64 + extra(u128)
GLOBAL_CONFIG_SIZE = 88

# disc(8) + seed(8) + name(16) + 3 x pubkey + 2 x u8 + 2 x pubkey
# + created_at(8) + 3 x u64 + extra(u128)
MARKET_SIZE = 242

# order_id(8) + owner(32) + price(8) + quantity(8) + created_at(8)
OPENED_ORDER_SIZE = 64

# disc(8) + side(1) + market(32) + orders_count(8) + vec len(4)
BOOK_HEADER_SIZE = 53

# disc(8) + address(32) + market(32) + 5 x u64 + extra(u128)
USER_MARKET_ORDERS_SIZE = 128

# Byte offsets used for getProgramAccounts filters
MARKET_AUTHORITY_OFFSET = 32
MARKET_BASE_MINT_OFFSET = 64
MARKET_QUOTE_MINT_OFFSET = 96
USER_MARKET_ORDERS_ADDRESS_OFFSET = 8
USER_MARKET_ORDERS_MARKET_OFFSET = 40

U64_MAX = 18446744073709551615
