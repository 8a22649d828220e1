"""Hybrid DEX SDK - Python client for the Hybrid DEX order book on Solana.

This SDK provides two main modules:
- `program`: On-chain program interaction (addresses, accounts, instructions)
- `shared`: Amount scaling used by the client and the CLI

Example:
    from hybrid_dex import ClientConfig, HybridDexClient, Session

    async with Session.from_config(ClientConfig.from_env()) as session:
        client = HybridDexClient(session)
        markets = await client.get_markets()
"""

__version__ = "0.1.0"

# ============================================================================
# MODULE IMPORTS
# ============================================================================

from . import program
from . import shared

# ============================================================================
# CONVENIENCE RE-EXPORTS
# ============================================================================

from .config import ClientConfig, ConfigError
from .program import (
    PROGRAM_ID,
    AccountKind,
    Book,
    GlobalConfig,
    HybridDexClient,
    HybridDexError,
    Market,
    OpenedOrder,
    Session,
    Side,
    UserMarketOrders,
    decode_account,
    encode_account,
    market_filters,
)
from .shared import ScalingError, format_amount, scale_amount, unscale_amount

__all__ = [
    "__version__",
    "program",
    "shared",
    "ClientConfig",
    "ConfigError",
    "PROGRAM_ID",
    "AccountKind",
    "Book",
    "GlobalConfig",
    "HybridDexClient",
    "HybridDexError",
    "Market",
    "OpenedOrder",
    "Session",
    "Side",
    "UserMarketOrders",
    "decode_account",
    "encode_account",
    "market_filters",
    "ScalingError",
    "format_amount",
    "scale_amount",
    "unscale_amount",
]
