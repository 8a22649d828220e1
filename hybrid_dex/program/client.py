"""Main client for the Hybrid DEX SDK."""

import logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple, Union

import base58
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import MemcmpOpts, TxOpts
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .accounts import ACCOUNT_CODECS, decode_account
from .constants import (
    MARKET_AUTHORITY_OFFSET,
    MARKET_BASE_MINT_OFFSET,
    MARKET_QUOTE_MINT_OFFSET,
    U64_MAX,
    USER_MARKET_ORDERS_ADDRESS_OFFSET,
    USER_MARKET_ORDERS_MARKET_OFFSET,
)
from .errors import (
    AccountExistsError,
    AccountNotFoundError,
    CapacityExceededError,
    InvalidAmountError,
    InvalidSideError,
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
    validate_market_name,
)
from .pda import (
    get_book_pda,
    get_global_config_pda,
    get_market_pda,
    get_user_market_orders_pda,
)
from .session import Session, resolve_pubkey
from .types import (
    Account,
    AccountKind,
    Book,
    CancelOrderParams,
    GlobalConfig,
    Market,
    OpenedOrder,
    PartialTakeOrderParams,
    PlaceOrderParams,
    Side,
    TakeOrderParams,
    UserMarketOrders,
)

logger = logging.getLogger(__name__)


def market_filters(
    base_mint: Optional[Pubkey] = None,
    quote_mint: Optional[Pubkey] = None,
    authority: Optional[Pubkey] = None,
) -> List[MemcmpOpts]:
    """Build getProgramAccounts filters for market discovery."""
    filters = []
    if authority is not None:
        filters.append(MemcmpOpts(offset=MARKET_AUTHORITY_OFFSET, bytes=str(authority)))
    if base_mint is not None:
        filters.append(MemcmpOpts(offset=MARKET_BASE_MINT_OFFSET, bytes=str(base_mint)))
    if quote_mint is not None:
        filters.append(MemcmpOpts(offset=MARKET_QUOTE_MINT_OFFSET, bytes=str(quote_mint)))
    return filters


def _require_amount(name: str, value: int) -> None:
    if not 0 < value <= U64_MAX:
        raise InvalidAmountError(f"{name} must be in (0, {U64_MAX}], got {value}")


class HybridDexClient:
    """Async client for interacting with the Hybrid DEX program."""

    def __init__(self, session: Session):
        """Initialize the client.

        Args:
            session: Connection, signer and program settings
        """
        self.session = session

    @property
    def connection(self):
        return self.session.connection

    @property
    def program_id(self) -> Pubkey:
        return self.session.program_id

    # =========================================================================
    # State Reader
    # =========================================================================

    async def fetch_one(self, kind: AccountKind, address: Pubkey) -> Account:
        """Fetch and decode one account as ``kind``.

        Raises:
            AccountNotFoundError: If no account exists at ``address``
            MalformedAccountError: If the data is not a ``kind`` account
        """
        account = await self._fetch_optional(kind, address)
        if account is None:
            raise AccountNotFoundError(str(address), kind.value)
        return account

    async def _fetch_optional(
        self, kind: AccountKind, address: Pubkey
    ) -> Optional[Account]:
        response = await self.connection.get_account_info(
            address, commitment=self.session.commitment
        )

        if response.value is None:
            return None

        return decode_account(kind, response.value.data)

    async def scan(
        self,
        kind: AccountKind,
        filters: Optional[Sequence[MemcmpOpts]] = None,
    ) -> AsyncIterator[Tuple[Pubkey, Account]]:
        """Yield every ``(address, entity)`` of ``kind`` matching ``filters``.

        Issues a single getProgramAccounts query filtered by the kind's
        discriminator. Results come in whatever order the node returns.
        """
        discriminator = ACCOUNT_CODECS[kind].discriminator
        query = [MemcmpOpts(offset=0, bytes=base58.b58encode(discriminator).decode())]
        query.extend(filters or [])

        response = await self.connection.get_program_accounts(
            self.program_id,
            commitment=self.session.commitment,
            encoding="base64",
            filters=query,
        )
        logger.debug(f"scan {kind.value}: {len(response.value)} accounts")

        for keyed in response.value:
            yield keyed.pubkey, decode_account(kind, keyed.account.data)

    async def get_global_config(self) -> GlobalConfig:
        """Fetch and deserialize the global config account."""
        global_config, _ = get_global_config_pda(self.program_id)
        return await self.fetch_one(AccountKind.GLOBAL_CONFIG, global_config)

    async def get_market(self, market: Pubkey) -> Market:
        """Fetch and deserialize a market account by its address."""
        state = await self.fetch_one(AccountKind.MARKET, market)

        expected, _ = get_market_pda(
            state.seed, self.program_id, self.session.market_seed_width
        )
        if expected != market:
            logger.warning(
                f"Market {market} does not derive from seed {state.seed} with a "
                f"{self.session.market_seed_width}-byte seed; check the market seed width"
            )

        return state

    def get_market_address(self, seq_num: int) -> Pubkey:
        """Derive the market address for a sequence number."""
        market, _ = get_market_pda(seq_num, self.program_id, self.session.market_seed_width)
        return market

    async def get_market_by_seq(self, seq_num: int) -> Market:
        """Fetch and deserialize a market account by its sequence number."""
        return await self.fetch_one(AccountKind.MARKET, self.get_market_address(seq_num))

    async def get_next_market_address(self) -> Pubkey:
        """Address the next created market will get."""
        config = await self.get_global_config()
        return self.get_market_address(config.market_seq_num)

    async def get_book(self, market: Pubkey, side: Union[Side, str]) -> Book:
        """Fetch one side of a market's order book.

        Raises:
            InvalidSideError: If the stored book is for the other side
        """
        side = Side.parse(side)
        book_address, _ = get_book_pda(side, market, self.program_id)
        book = await self.fetch_one(AccountKind.BOOK, book_address)

        if book.side != side:
            raise InvalidSideError(
                f"book {book_address} holds {book.side.name} orders, expected {side.name}"
            )

        return book

    async def get_user_market_orders(
        self, market: Pubkey, user: Pubkey
    ) -> UserMarketOrders:
        """Fetch a user's order state for a market."""
        address, _ = get_user_market_orders_pda(market, user, self.program_id)
        return await self.fetch_one(AccountKind.USER_MARKET_ORDERS, address)

    async def get_markets(
        self, filters: Optional[Sequence[MemcmpOpts]] = None
    ) -> List[Tuple[Pubkey, Market]]:
        """Fetch all markets matching ``filters``, oldest first."""
        markets = [item async for item in self.scan(AccountKind.MARKET, filters)]
        markets.sort(key=lambda item: (item[1].created_at, item[1].seed))
        return markets

    async def get_user_records(
        self, user: Pubkey, market: Optional[Pubkey] = None
    ) -> List[Tuple[Pubkey, UserMarketOrders]]:
        """Fetch the order records owned by ``user``, optionally in one market."""
        filters = [MemcmpOpts(offset=USER_MARKET_ORDERS_ADDRESS_OFFSET, bytes=str(user))]
        if market is not None:
            filters.append(MemcmpOpts(offset=USER_MARKET_ORDERS_MARKET_OFFSET, bytes=str(market)))
        return [item async for item in self.scan(AccountKind.USER_MARKET_ORDERS, filters)]

    async def get_open_orders(
        self, market: Pubkey, owner: Pubkey
    ) -> List[Tuple[Side, OpenedOrder]]:
        """Live orders of ``owner`` on both sides of a market."""
        orders = []
        for side in Side:
            book = await self.get_book(market, side)
            orders.extend((side, order) for order in book.orders_of(owner))
        return orders

    # =========================================================================
    # Admin Operations
    # =========================================================================

    async def _require_admin(self) -> GlobalConfig:
        config = await self.get_global_config()
        caller = self.session.identity
        if caller != config.admin:
            raise UnauthorizedError(str(caller), f"admin {config.admin}")
        return config

    async def initialize(
        self, max_orders_per_user: int, max_orders_per_book: int
    ) -> Transaction:
        """Build an initialize transaction.

        Raises:
            AccountExistsError: If the global config already exists
        """
        _require_amount("max_orders_per_user", max_orders_per_user)
        _require_amount("max_orders_per_book", max_orders_per_book)

        global_config, _ = get_global_config_pda(self.program_id)
        if await self._fetch_optional(AccountKind.GLOBAL_CONFIG, global_config) is not None:
            raise AccountExistsError(str(global_config), AccountKind.GLOBAL_CONFIG.value)

        ix = build_initialize_instruction(
            self.session.identity,
            max_orders_per_user,
            max_orders_per_book,
            self.program_id,
        )
        logger.info(
            f"initialize: {max_orders_per_user} orders per user, "
            f"{max_orders_per_book} orders per book"
        )
        return await self._build_transaction([ix])

    async def transfer_admin(self, new_admin: Union[str, Pubkey]) -> Transaction:
        """Build a transfer_admin transaction.

        Args:
            new_admin: Address of the new admin, or the path of its keyfile
        """
        new_admin = resolve_pubkey(new_admin)
        await self._require_admin()

        ix = build_transfer_admin_instruction(self.session.identity, new_admin, self.program_id)
        logger.info(f"transfer_admin: {self.session.identity} -> {new_admin}")
        return await self._build_transaction([ix])

    async def change_config(
        self,
        max_orders_per_user: Optional[int] = None,
        max_orders_per_book: Optional[int] = None,
    ) -> Transaction:
        """Build a change_config transaction updating only the supplied limits."""
        if max_orders_per_user is None and max_orders_per_book is None:
            raise InvalidAmountError("change_config needs at least one new limit")
        if max_orders_per_user is not None:
            _require_amount("max_orders_per_user", max_orders_per_user)
        if max_orders_per_book is not None:
            _require_amount("max_orders_per_book", max_orders_per_book)

        await self._require_admin()

        ix = build_change_config_instruction(
            self.session.identity,
            max_orders_per_user,
            max_orders_per_book,
            self.program_id,
        )
        logger.info(
            f"change_config: max_orders_per_user={max_orders_per_user}, "
            f"max_orders_per_book={max_orders_per_book}"
        )
        return await self._build_transaction([ix])

    # =========================================================================
    # Market Operations
    # =========================================================================

    async def create_market(
        self, base_mint: Pubkey, quote_mint: Pubkey, name: str
    ) -> Transaction:
        """Build a create_market transaction for the next sequence number.

        The sequence number is read from the global config now; if another
        market is created first the program rejects this transaction.
        """
        validate_market_name(name)
        config = await self.get_global_config()

        ix = build_create_market_instruction(
            authority=self.session.identity,
            market_seq_num=config.market_seq_num,
            base_mint=base_mint,
            quote_mint=quote_mint,
            name=name,
            program_id=self.program_id,
            seed_width=self.session.market_seed_width,
        )
        logger.info(
            f"create_market #{config.market_seq_num} {name!r}: "
            f"{self.get_market_address(config.market_seq_num)}"
        )
        return await self._build_transaction([ix])

    async def close_market(self, market: Pubkey) -> Transaction:
        """Build a close_market transaction.

        Raises:
            UnauthorizedError: Unless the caller is the market authority or admin
        """
        state = await self.get_market(market)
        config = await self.get_global_config()
        caller = self.session.identity
        if caller not in (state.market_authority, config.admin):
            raise UnauthorizedError(
                str(caller),
                f"market authority {state.market_authority} or admin {config.admin}",
            )

        ix = build_close_market_instruction(caller, market, state, self.program_id)
        logger.info(f"close_market #{state.seed}: {market}")
        return await self._build_transaction([ix])

    async def create_open_orders(self, market: Pubkey) -> Transaction:
        """Build a create_open_orders transaction for the session signer.

        Raises:
            AccountExistsError: If the signer already has a record for ``market``
        """
        await self.get_market(market)
        user = self.session.identity

        address, _ = get_user_market_orders_pda(market, user, self.program_id)
        if await self._fetch_optional(AccountKind.USER_MARKET_ORDERS, address) is not None:
            raise AccountExistsError(str(address), AccountKind.USER_MARKET_ORDERS.value)

        ix = build_create_open_orders_instruction(user, market, self.program_id)
        logger.info(f"create_open_orders: {address}")
        return await self._build_transaction([ix])

    # =========================================================================
    # Order Operations
    # =========================================================================

    async def place_order(self, params: PlaceOrderParams) -> Transaction:
        """Build a place_buy_order / place_sell_order transaction.

        Raises:
            UnauthorizedError: Unless the maker is the session signer
            CapacityExceededError: If the book or the maker is at its limit
        """
        side = Side.parse(params.side)
        _require_amount("price", params.price)
        _require_amount("quantity", params.quantity)
        self._require_signer_is(params.maker, "maker")

        config = await self.get_global_config()
        state = await self.get_market(params.market)
        user_orders = await self.get_user_market_orders(params.market, params.maker)
        book = await self.get_book(params.market, side)

        if book.orders_count >= config.max_orders_per_book:
            raise CapacityExceededError(
                f"{side.layout.label} book of {params.market}",
                book.orders_count,
                config.max_orders_per_book,
            )
        if user_orders.opened_orders_count >= config.max_orders_per_user:
            raise CapacityExceededError(
                f"orders of {params.maker}",
                user_orders.opened_orders_count,
                config.max_orders_per_user,
            )

        ix = build_place_order_instruction(
            maker=params.maker,
            market=params.market,
            market_state=state,
            side=side,
            price=params.price,
            quantity=params.quantity,
            program_id=self.program_id,
        )
        logger.info(
            f"place {side.layout.label} #{state.order_seq_num} on {params.market}: "
            f"price={params.price} quantity={params.quantity}"
        )
        return await self._build_transaction([ix])

    def _require_signer_is(self, key: Pubkey, role: str) -> None:
        """The maker or taker signs its own transaction, so it must be the session signer."""
        caller = self.session.identity
        if caller != key:
            raise UnauthorizedError(str(caller), f"{role} {key}")

    async def _find_maker_order(
        self, market: Pubkey, side: Side, order_id: int, maker: Pubkey
    ) -> OpenedOrder:
        book = await self.get_book(market, side)
        order = book.find_order(order_id)
        if order is None:
            book_address, _ = get_book_pda(side, market, self.program_id)
            raise OrderNotFoundError(order_id, str(book_address))
        if order.owner != maker:
            raise UnauthorizedError(str(maker), f"owner of order {order_id} ({order.owner})")
        return order

    async def cancel_order(self, params: CancelOrderParams) -> Transaction:
        """Build a cancel_buy_order / cancel_sell_order transaction."""
        side = Side.parse(params.side)
        self._require_signer_is(params.maker, "maker")
        state = await self.get_market(params.market)
        await self.get_user_market_orders(params.market, params.maker)
        await self._find_maker_order(params.market, side, params.order_id, params.maker)

        ix = build_cancel_order_instruction(
            maker=params.maker,
            market=params.market,
            market_state=state,
            side=side,
            order_id=params.order_id,
            program_id=self.program_id,
        )
        logger.info(f"cancel {side.layout.label} #{params.order_id} on {params.market}")
        return await self._build_transaction([ix])

    async def _prepare_take(
        self, params: Union[TakeOrderParams, PartialTakeOrderParams]
    ) -> Tuple[Side, Market, OpenedOrder]:
        side = Side.parse(params.side)
        self._require_signer_is(params.taker, "taker")
        state = await self.get_market(params.market)
        order = await self._find_maker_order(
            params.market, side, params.order_id, params.maker
        )
        await self.get_user_market_orders(params.market, params.maker)
        await self.get_user_market_orders(params.market, params.taker)
        return side, state, order

    async def take_order(self, params: TakeOrderParams) -> Transaction:
        """Build a take_buy_order / take_sell_order transaction for the full quantity."""
        side, state, order = await self._prepare_take(params)

        ix = build_take_order_instruction(
            taker=params.taker,
            maker=params.maker,
            market=params.market,
            market_state=state,
            side=side,
            order_id=params.order_id,
            program_id=self.program_id,
        )
        logger.info(
            f"take {side.layout.label} #{params.order_id} on {params.market}: "
            f"quantity={order.quantity} price={order.price}"
        )
        return await self._build_transaction([ix])

    async def partial_take_order(self, params: PartialTakeOrderParams) -> Transaction:
        """Build a partial_take_buy_order / partial_take_sell_order transaction.

        Raises:
            InvalidAmountError: Unless 0 < amount < the order's remaining quantity
        """
        side, state, order = await self._prepare_take(params)
        if not 0 < params.amount < order.quantity:
            raise InvalidAmountError(
                f"partial amount must be in (0, {order.quantity}), got {params.amount}"
            )

        ix = build_partial_take_order_instruction(
            taker=params.taker,
            maker=params.maker,
            market=params.market,
            market_state=state,
            side=side,
            order_id=params.order_id,
            amount=params.amount,
            program_id=self.program_id,
        )
        logger.info(
            f"partial take {side.layout.label} #{params.order_id} on {params.market}: "
            f"{params.amount} of {order.quantity}"
        )
        return await self._build_transaction([ix])

    # =========================================================================
    # Submission
    # =========================================================================

    async def send(self, transaction: Transaction, confirm: bool = True) -> Signature:
        """Sign a transaction with the session signer and submit it.

        Raises:
            RemoteRejectedError: If the node or the program rejects it
        """
        signer = self.session.require_signer()
        transaction.sign([signer], transaction.message.recent_blockhash)

        try:
            response = await self.connection.send_raw_transaction(
                bytes(transaction),
                opts=TxOpts(
                    skip_confirmation=True,
                    preflight_commitment=self.session.commitment,
                ),
            )
        except RPCException as e:
            logger.error(f"Transaction rejected: {e}")
            raise RemoteRejectedError(str(e)) from e

        signature = response.value
        logger.info(f"Submitted {signature}")

        if confirm:
            await self._confirm(signature)

        return signature

    async def _confirm(self, signature: Signature) -> None:
        try:
            response = await self.connection.confirm_transaction(
                signature, self.session.commitment
            )
        except (RPCException, UnconfirmedTxError) as e:
            logger.error(f"Transaction {signature} not confirmed: {e}")
            raise RemoteRejectedError(str(e)) from e

        status = response.value[0] if response.value else None
        if status is not None and status.err is not None:
            logger.error(f"Transaction {signature} failed: {status.err}")
            raise RemoteRejectedError(str(status.err))

        logger.info(f"Confirmed {signature}")

    async def _build_transaction(
        self, instructions: List[Instruction]
    ) -> Transaction:
        """Build an unsigned transaction paid for by the session signer."""
        # Get recent blockhash
        response = await self.connection.get_latest_blockhash()
        blockhash = response.value.blockhash

        payer = self.session.signer.pubkey() if self.session.signer is not None else None
        message = Message.new_with_blockhash(instructions, payer, blockhash)

        return Transaction.new_unsigned(message)
