"""PDA (Program Derived Address) derivation functions for the Hybrid DEX SDK."""

import logging
from typing import Sequence, Tuple

from solders.pubkey import Pubkey

from .constants import (
    DEFAULT_MARKET_SEED_WIDTH,
    MAX_SEED_LEN,
    MAX_SEEDS,
    PROGRAM_ID,
    SEED_GLOBAL_AUTHORITY,
    SEED_MARKET,
    SEED_USER_MARKET_ORDERS,
    SUPPORTED_MARKET_SEED_WIDTHS,
)
from .errors import InvalidSeedsError, NoValidBumpError
from .types import Side
from .utils import encode_le_uint

logger = logging.getLogger(__name__)


def derive(program_id: Pubkey, seeds: Sequence[bytes]) -> Tuple[Pubkey, int]:
    """Derive a program address and its bump seed.

    Seeds are checked here first because solders panics on unusable seeds
    instead of raising.

    Raises:
        InvalidSeedsError: If there are too many seeds or a seed is too long
        NoValidBumpError: If every bump yields an on-curve point
    """
    seeds = [bytes(seed) for seed in seeds]
    if len(seeds) + 1 > MAX_SEEDS:
        raise InvalidSeedsError(
            f"{len(seeds)} seeds plus bump exceeds the limit of {MAX_SEEDS}"
        )
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeedsError(
                f"seed {i} is {len(seed)} bytes (max {MAX_SEED_LEN})"
            )

    try:
        return Pubkey.find_program_address(seeds, program_id)
    except BaseException as e:
        # An exhausted bump search surfaces as a pyo3 PanicException
        if type(e).__name__ != "PanicException":
            raise
        raise NoValidBumpError(str(program_id)) from e


def encode_market_seed(seq_num: int, width: int = DEFAULT_MARKET_SEED_WIDTH) -> bytes:
    """Encode a market sequence number as a little-endian seed.

    Raises:
        InvalidSeedsError: If the width is unsupported or the number does not fit
    """
    if width not in SUPPORTED_MARKET_SEED_WIDTHS:
        raise InvalidSeedsError(
            f"market seed width must be one of {SUPPORTED_MARKET_SEED_WIDTHS}, got {width}"
        )
    try:
        return encode_le_uint(seq_num, width)
    except ValueError as e:
        raise InvalidSeedsError(str(e)) from e


def get_global_config_pda(program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Derive the global config PDA.

    Seeds: ["global-authority"]
    """
    return derive(program_id, [SEED_GLOBAL_AUTHORITY])


def get_market_pda(
    seq_num: int,
    program_id: Pubkey = PROGRAM_ID,
    seed_width: int = DEFAULT_MARKET_SEED_WIDTH,
) -> Tuple[Pubkey, int]:
    """Derive the market PDA for a market sequence number.

    Seeds: ["market", seq_num (u32 or u64 LE, per ``seed_width``)]
    """
    pda = derive(program_id, [SEED_MARKET, encode_market_seed(seq_num, seed_width)])
    logger.debug(f"market #{seq_num} (seed width {seed_width}): {pda[0]}")
    return pda


def get_book_pda(
    side: Side,
    market: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive one side of a market's order book.

    Seeds: ["bid-book" | "ask-book", market]
    """
    return derive(program_id, [Side.parse(side).layout.book_seed, bytes(market)])


def get_bids_pda(market: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Derive the bid book PDA.

    Seeds: ["bid-book", market]
    """
    return get_book_pda(Side.BID, market, program_id)


def get_asks_pda(market: Pubkey, program_id: Pubkey = PROGRAM_ID) -> Tuple[Pubkey, int]:
    """Derive the ask book PDA.

    Seeds: ["ask-book", market]
    """
    return get_book_pda(Side.ASK, market, program_id)


def get_user_market_orders_pda(
    market: Pubkey,
    user: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Tuple[Pubkey, int]:
    """Derive a user's order state PDA for a market.

    Seeds: ["user-market-book", market, user]
    """
    return derive(
        program_id,
        [SEED_USER_MARKET_ORDERS, bytes(market), bytes(user)],
    )
