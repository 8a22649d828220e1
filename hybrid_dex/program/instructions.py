"""Instruction builders for the Hybrid DEX SDK.

This module provides functions to build all Hybrid DEX program instructions.
Instruction data is the 8-byte Anchor discriminator followed by the
Borsh-encoded arguments. Builders are pure: they derive addresses but never
touch the network.
"""

from typing import List, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    DEFAULT_MARKET_SEED_WIDTH,
    INSTRUCTION_CHANGE_CONFIG,
    INSTRUCTION_CLOSE_MARKET,
    INSTRUCTION_CREATE_MARKET,
    INSTRUCTION_CREATE_OPEN_ORDERS,
    INSTRUCTION_INITIALIZE,
    INSTRUCTION_TRANSFER_ADMIN,
    MARKET_NAME_LEN,
    PROGRAM_ID,
    RENT_SYSVAR_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    instruction_discriminator,
)
from .errors import InvalidNameError
from .pda import (
    get_asks_pda,
    get_bids_pda,
    get_book_pda,
    get_global_config_pda,
    get_market_pda,
    get_user_market_orders_pda,
)
from .types import Market, Side
from .utils import (
    encode_option_u64,
    encode_string,
    encode_u64,
    get_associated_token_address,
)


def _program_accounts(with_token_programs: bool = False) -> List[AccountMeta]:
    """Trailing program and sysvar accounts, in the order the program expects."""
    accounts = []
    if with_token_programs:
        accounts.append(
            AccountMeta(pubkey=ASSOCIATED_TOKEN_PROGRAM_ID, is_signer=False, is_writable=False)
        )
        accounts.append(
            AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False)
        )
    accounts.append(AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False))
    accounts.append(AccountMeta(pubkey=RENT_SYSVAR_ID, is_signer=False, is_writable=False))
    return accounts


def validate_market_name(name: str) -> bytes:
    """Return the UTF-8 bytes of a market name.

    Raises:
        InvalidNameError: If the name does not fit the 16-byte field
    """
    encoded = name.encode("utf-8")
    if len(encoded) > MARKET_NAME_LEN:
        raise InvalidNameError(name, MARKET_NAME_LEN)
    return encoded


# ============================================================================
# Admin
# ============================================================================


def build_initialize_instruction(
    admin: Pubkey,
    max_orders_per_user: int,
    max_orders_per_book: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the initialize instruction.

    Accounts:
    0. admin (signer, writable)
    1. global_config (writable)
    2. system_program
    3. rent

    Data: [disc, max_orders_per_user (u64), max_orders_per_book (u64)]
    """
    global_config, _ = get_global_config_pda(program_id)

    data = bytearray()
    data.extend(instruction_discriminator(INSTRUCTION_INITIALIZE))
    data.extend(encode_u64(max_orders_per_user))
    data.extend(encode_u64(max_orders_per_book))

    accounts = [
        AccountMeta(pubkey=admin, is_signer=True, is_writable=True),
        AccountMeta(pubkey=global_config, is_signer=False, is_writable=True),
    ] + _program_accounts()

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))


def build_transfer_admin_instruction(
    admin: Pubkey,
    new_admin: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the transfer_admin instruction.

    Accounts:
    0. admin (signer, writable)
    1. global_config (writable)

    Data: [disc, new_admin (32)]
    """
    global_config, _ = get_global_config_pda(program_id)

    data = instruction_discriminator(INSTRUCTION_TRANSFER_ADMIN) + bytes(new_admin)

    accounts = [
        AccountMeta(pubkey=admin, is_signer=True, is_writable=True),
        AccountMeta(pubkey=global_config, is_signer=False, is_writable=True),
    ]

    return Instruction(program_id=program_id, accounts=accounts, data=data)


def build_change_config_instruction(
    admin: Pubkey,
    max_orders_per_user: Optional[int] = None,
    max_orders_per_book: Optional[int] = None,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the change_config instruction.

    Accounts:
    0. admin (signer, writable)
    1. global_config (writable)

    Data: [disc, Option<u64> max_orders_per_user, Option<u64> max_orders_per_book]
    """
    global_config, _ = get_global_config_pda(program_id)

    data = bytearray()
    data.extend(instruction_discriminator(INSTRUCTION_CHANGE_CONFIG))
    data.extend(encode_option_u64(max_orders_per_user))
    data.extend(encode_option_u64(max_orders_per_book))

    accounts = [
        AccountMeta(pubkey=admin, is_signer=True, is_writable=True),
        AccountMeta(pubkey=global_config, is_signer=False, is_writable=True),
    ]

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))


# ============================================================================
# Markets
# ============================================================================


def _market_lifecycle_accounts(
    authority: Pubkey,
    market: Pubkey,
    base_mint: Pubkey,
    quote_mint: Pubkey,
    program_id: Pubkey,
) -> List[AccountMeta]:
    global_config, _ = get_global_config_pda(program_id)
    bids, _ = get_bids_pda(market, program_id)
    asks, _ = get_asks_pda(market, program_id)

    return [
        AccountMeta(pubkey=authority, is_signer=True, is_writable=True),
        AccountMeta(pubkey=global_config, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market, is_signer=False, is_writable=True),
        AccountMeta(pubkey=base_mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=quote_mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=bids, is_signer=False, is_writable=True),
        AccountMeta(pubkey=asks, is_signer=False, is_writable=True),
    ] + _program_accounts()


def build_create_market_instruction(
    authority: Pubkey,
    market_seq_num: int,
    base_mint: Pubkey,
    quote_mint: Pubkey,
    name: str,
    program_id: Pubkey = PROGRAM_ID,
    seed_width: int = DEFAULT_MARKET_SEED_WIDTH,
) -> Instruction:
    """Build the create_market instruction.

    ``market_seq_num`` is the global config's current ``market_seq_num``;
    the new market is derived from it.

    Accounts:
    0. authority (signer, writable)
    1. global_config (writable)
    2. market (writable)
    3. base_mint
    4. quote_mint
    5. bids_book (writable)
    6. asks_book (writable)
    7. system_program
    8. rent

    Data: [disc, name (Borsh string)]
    """
    validate_market_name(name)
    market, _ = get_market_pda(market_seq_num, program_id, seed_width)

    data = instruction_discriminator(INSTRUCTION_CREATE_MARKET) + encode_string(name)
    accounts = _market_lifecycle_accounts(
        authority, market, base_mint, quote_mint, program_id
    )

    return Instruction(program_id=program_id, accounts=accounts, data=data)


def build_close_market_instruction(
    authority: Pubkey,
    market: Pubkey,
    market_state: Market,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the close_market instruction.

    Accounts: same as create_market.

    Data: [disc, seed (u64)]
    """
    data = instruction_discriminator(INSTRUCTION_CLOSE_MARKET) + encode_u64(
        market_state.seed
    )
    accounts = _market_lifecycle_accounts(
        authority,
        market,
        market_state.base_mint,
        market_state.quote_mint,
        program_id,
    )

    return Instruction(program_id=program_id, accounts=accounts, data=data)


def build_create_open_orders_instruction(
    user: Pubkey,
    market: Pubkey,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build the create_open_orders instruction.

    Accounts:
    0. user (signer, writable)
    1. market
    2. user_market_orders (writable)
    3. system_program
    4. rent

    Data: [disc]
    """
    user_orders, _ = get_user_market_orders_pda(market, user, program_id)

    accounts = [
        AccountMeta(pubkey=user, is_signer=True, is_writable=True),
        AccountMeta(pubkey=market, is_signer=False, is_writable=False),
        AccountMeta(pubkey=user_orders, is_signer=False, is_writable=True),
    ] + _program_accounts()

    return Instruction(
        program_id=program_id,
        accounts=accounts,
        data=instruction_discriminator(INSTRUCTION_CREATE_OPEN_ORDERS),
    )


# ============================================================================
# Orders
# ============================================================================


def build_place_order_instruction(
    maker: Pubkey,
    market: Pubkey,
    market_state: Market,
    side: Side,
    price: int,
    quantity: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build place_buy_order or place_sell_order.

    ``quantity`` is the amount of the escrowed mint (quote for a bid, base
    for an ask) moved from the maker into the market vault.

    Accounts:
    0. maker (signer, writable)
    1. global_config
    2. market (writable)
    3. user_market_orders (writable)
    4. base_mint
    5. quote_mint
    6. maker escrow token account (writable)
    7. market escrow vault (writable)
    8. side book (writable)
    9. associated_token_program
    10. token_program
    11. system_program
    12. rent

    Data: [disc, price (u64), quantity (u64)]
    """
    layout = Side.parse(side).layout
    global_config, _ = get_global_config_pda(program_id)
    user_orders, _ = get_user_market_orders_pda(market, maker, program_id)
    escrow_mint = layout.escrow_mint(market_state)
    book, _ = get_book_pda(layout.side, market, program_id)

    data = bytearray()
    data.extend(instruction_discriminator(layout.place_instruction))
    data.extend(encode_u64(price))
    data.extend(encode_u64(quantity))

    accounts = [
        AccountMeta(pubkey=maker, is_signer=True, is_writable=True),
        AccountMeta(pubkey=global_config, is_signer=False, is_writable=False),
        AccountMeta(pubkey=market, is_signer=False, is_writable=True),
        AccountMeta(pubkey=user_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market_state.base_mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=market_state.quote_mint, is_signer=False, is_writable=False),
        AccountMeta(
            pubkey=get_associated_token_address(maker, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            pubkey=get_associated_token_address(market, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(pubkey=book, is_signer=False, is_writable=True),
    ] + _program_accounts(with_token_programs=True)

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))


def build_cancel_order_instruction(
    maker: Pubkey,
    market: Pubkey,
    market_state: Market,
    side: Side,
    order_id: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build cancel_buy_order or cancel_sell_order.

    Accounts:
    0. maker (signer, writable)
    1. market
    2. user_market_orders (writable)
    3. base_mint
    4. quote_mint
    5. maker escrow token account (writable)
    6. market escrow vault (writable)
    7. side book (writable)
    8. associated_token_program
    9. token_program
    10. system_program
    11. rent

    Data: [disc, seed (u64), order_id (u64)]
    """
    layout = Side.parse(side).layout
    user_orders, _ = get_user_market_orders_pda(market, maker, program_id)
    escrow_mint = layout.escrow_mint(market_state)
    book, _ = get_book_pda(layout.side, market, program_id)

    data = bytearray()
    data.extend(instruction_discriminator(layout.cancel_instruction))
    data.extend(encode_u64(market_state.seed))
    data.extend(encode_u64(order_id))

    accounts = [
        AccountMeta(pubkey=maker, is_signer=True, is_writable=True),
        AccountMeta(pubkey=market, is_signer=False, is_writable=False),
        AccountMeta(pubkey=user_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market_state.base_mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=market_state.quote_mint, is_signer=False, is_writable=False),
        AccountMeta(
            pubkey=get_associated_token_address(maker, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            pubkey=get_associated_token_address(market, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(pubkey=book, is_signer=False, is_writable=True),
    ] + _program_accounts(with_token_programs=True)

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))


def _take_accounts(
    taker: Pubkey,
    maker: Pubkey,
    market: Pubkey,
    market_state: Market,
    side: Side,
    program_id: Pubkey,
) -> List[AccountMeta]:
    """Accounts shared by the full and partial take instructions.

    The taker pays the maker in the counter mint and receives the escrowed
    mint from the market vault.
    """
    layout = side.layout
    maker_orders, _ = get_user_market_orders_pda(market, maker, program_id)
    taker_orders, _ = get_user_market_orders_pda(market, taker, program_id)
    escrow_mint = layout.escrow_mint(market_state)
    book, _ = get_book_pda(layout.side, market, program_id)
    counter_mint = layout.counter_mint(market_state)

    return [
        AccountMeta(pubkey=taker, is_signer=True, is_writable=True),
        AccountMeta(pubkey=maker, is_signer=False, is_writable=False),
        AccountMeta(pubkey=market, is_signer=False, is_writable=True),
        AccountMeta(pubkey=maker_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=taker_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market_state.base_mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=market_state.quote_mint, is_signer=False, is_writable=False),
        AccountMeta(
            pubkey=get_associated_token_address(maker, counter_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            pubkey=get_associated_token_address(taker, counter_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            pubkey=get_associated_token_address(taker, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            pubkey=get_associated_token_address(market, escrow_mint),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(pubkey=book, is_signer=False, is_writable=True),
    ] + _program_accounts(with_token_programs=True)


def build_take_order_instruction(
    taker: Pubkey,
    maker: Pubkey,
    market: Pubkey,
    market_state: Market,
    side: Side,
    order_id: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build take_buy_order or take_sell_order.

    Accounts:
    0. taker (signer, writable)
    1. maker
    2. market (writable)
    3. maker_market_orders (writable)
    4. taker_market_orders (writable)
    5. base_mint
    6. quote_mint
    7. maker counter token account (writable)
    8. taker counter token account (writable)
    9. taker escrow token account (writable)
    10. market escrow vault (writable)
    11. side book (writable)
    12. associated_token_program
    13. token_program
    14. system_program
    15. rent

    Data: [disc, seed (u64), order_id (u64)]
    """
    side = Side.parse(side)

    data = bytearray()
    data.extend(instruction_discriminator(side.layout.take_instruction))
    data.extend(encode_u64(market_state.seed))
    data.extend(encode_u64(order_id))

    accounts = _take_accounts(taker, maker, market, market_state, side, program_id)

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))


def build_partial_take_order_instruction(
    taker: Pubkey,
    maker: Pubkey,
    market: Pubkey,
    market_state: Market,
    side: Side,
    order_id: int,
    amount: int,
    program_id: Pubkey = PROGRAM_ID,
) -> Instruction:
    """Build partial_take_buy_order or partial_take_sell_order.

    Accounts: same as take_order.

    Data: [disc, seed (u64), order_id (u64), amount (u64)]
    """
    side = Side.parse(side)

    data = bytearray()
    data.extend(instruction_discriminator(side.layout.partial_take_instruction))
    data.extend(encode_u64(market_state.seed))
    data.extend(encode_u64(order_id))
    data.extend(encode_u64(amount))

    accounts = _take_accounts(taker, maker, market, market_state, side, program_id)

    return Instruction(program_id=program_id, accounts=accounts, data=bytes(data))
