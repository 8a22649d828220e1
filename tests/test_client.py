"""Tests for the client module."""

import json
import logging

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from hybrid_dex.program import (
    PROGRAM_ID,
    AccountExistsError,
    AccountKind,
    AccountNotFoundError,
    Book,
    CancelOrderParams,
    CapacityExceededError,
    GlobalConfig,
    HybridDexClient,
    InvalidAmountError,
    InvalidNameError,
    InvalidSeedsError,
    InvalidSideError,
    KeypairError,
    MalformedAccountError,
    OrderNotFoundError,
    PartialTakeOrderParams,
    PlaceOrderParams,
    RemoteRejectedError,
    Session,
    Side,
    TakeOrderParams,
    UnauthorizedError,
    get_bids_pda,
    get_global_config_pda,
    get_market_pda,
    market_filters,
)
from hybrid_dex.program.constants import MARKET_DISCRIMINATOR

from fake_ledger import FakeLedger


def client_for(ledger: FakeLedger, keypair: Keypair = None, width: int = 8) -> HybridDexClient:
    return HybridDexClient(Session(connection=ledger, signer=keypair, market_seed_width=width))


async def setup_market(ledger, per_user=10, per_book=10, width=8):
    admin = client_for(ledger, Keypair(), width)
    await admin.send(await admin.initialize(per_user, per_book))
    await admin.send(await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "SOL/USDC"))
    return admin, admin.get_market_address(0)


async def open_trader(ledger, market, width=8) -> HybridDexClient:
    client = client_for(ledger, Keypair(), width)
    await client.send(await client.create_open_orders(market))
    return client


async def place(client, market, side, price, quantity=10):
    params = PlaceOrderParams(client.session.identity, market, side, price, quantity)
    await client.send(await client.place_order(params))


@pytest.fixture
def ledger():
    return FakeLedger()


class TestClientInit:
    def test_default_program_id(self, ledger):
        assert client_for(ledger).program_id == PROGRAM_ID

    def test_custom_program_id(self, ledger):
        custom_id = Pubkey.new_unique()
        client = HybridDexClient(Session(connection=ledger, program_id=custom_id))

        assert client.program_id == custom_id

    def test_session_rejects_unsupported_seed_width(self, ledger):
        with pytest.raises(InvalidSeedsError):
            Session(connection=ledger, market_seed_width=2)


class TestStateReader:
    @pytest.mark.asyncio
    async def test_fetch_one_missing(self, ledger):
        address = Pubkey.new_unique()

        with pytest.raises(AccountNotFoundError) as exc_info:
            await client_for(ledger).fetch_one(AccountKind.MARKET, address)

        assert exc_info.value.address == str(address)
        assert exc_info.value.kind == "Market"

    @pytest.mark.asyncio
    async def test_fetch_one_wrong_kind(self, ledger):
        address, _ = get_global_config_pda()
        ledger.put(address, GlobalConfig(Pubkey.new_unique(), 1, 1, 0, 0))

        with pytest.raises(MalformedAccountError):
            await client_for(ledger).fetch_one(AccountKind.MARKET, address)

    @pytest.mark.asyncio
    async def test_get_book_side_mismatch(self, ledger):
        market = Pubkey.new_unique()
        ledger.put(get_bids_pda(market)[0], Book(side=Side.ASK, market=market))

        with pytest.raises(InvalidSideError):
            await client_for(ledger).get_book(market, Side.BID)

    @pytest.mark.asyncio
    async def test_market_seed_width_mismatch_warns(self, caplog):
        legacy = FakeLedger(market_seed_width=4)
        _, market = await setup_market(legacy, width=4)

        caplog.set_level(logging.WARNING, logger="hybrid_dex.program.client")
        state = await client_for(legacy, width=8).get_market(market)

        assert state.seed == 0
        assert "market seed width" in caplog.text


class TestScan:
    @pytest.mark.asyncio
    async def test_scan_single_query(self, ledger):
        admin, _ = await setup_market(ledger)
        await admin.send(await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "B"))
        calls = ledger.program_accounts_calls

        markets = [item async for item in admin.scan(AccountKind.MARKET)]

        assert len(markets) == 2
        assert ledger.program_accounts_calls == calls + 1
        assert all(address == admin.get_market_address(m.seed) for address, m in markets)

    @pytest.mark.asyncio
    async def test_scan_filters_by_discriminator(self, ledger):
        admin, _ = await setup_market(ledger)

        books = [book async for _, book in admin.scan(AccountKind.BOOK)]

        assert sorted(book.side for book in books) == [Side.BID, Side.ASK]

    @pytest.mark.asyncio
    async def test_market_filters(self, ledger):
        admin, _ = await setup_market(ledger)
        base = Pubkey.new_unique()
        quote = Pubkey.new_unique()
        await admin.send(await admin.create_market(base, quote, "MINE"))
        await admin.send(await admin.create_market(base, Pubkey.new_unique(), "OTHER"))

        by_base = await admin.get_markets(market_filters(base_mint=base))
        by_pair = await admin.get_markets(market_filters(base_mint=base, quote_mint=quote))

        assert [m.name for _, m in by_base] == ["MINE", "OTHER"]
        assert [m.name for _, m in by_pair] == ["MINE"]

    @pytest.mark.asyncio
    async def test_get_markets_sorted_by_creation(self, ledger):
        admin, _ = await setup_market(ledger)
        await admin.send(await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "SECOND"))

        markets = await admin.get_markets()

        assert [m.seed for _, m in markets] == [0, 1]
        assert markets[0][1].created_at < markets[1][1].created_at

    @pytest.mark.asyncio
    async def test_scan_propagates_malformed(self, ledger):
        ledger.put_raw(Pubkey.new_unique(), MARKET_DISCRIMINATOR + bytes(10))

        with pytest.raises(MalformedAccountError):
            [item async for item in client_for(ledger).scan(AccountKind.MARKET)]

    @pytest.mark.asyncio
    async def test_user_records(self, ledger):
        admin, first = await setup_market(ledger)
        await admin.send(await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "B"))
        second = admin.get_market_address(1)
        trader = await open_trader(ledger, first)
        await trader.send(await trader.create_open_orders(second))
        await open_trader(ledger, first)

        everywhere = await trader.get_user_records(trader.session.identity)
        in_second = await trader.get_user_records(trader.session.identity, market=second)

        assert sorted(str(r.market) for _, r in everywhere) == sorted([str(first), str(second)])
        assert [r.market for _, r in in_second] == [second]

    @pytest.mark.asyncio
    async def test_open_orders_across_sides(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        other = await open_trader(ledger, market)
        await place(trader, market, Side.BID, 100)
        await place(other, market, Side.BID, 101)
        await place(trader, market, Side.ASK, 120)

        orders = await trader.get_open_orders(market, trader.session.identity)

        assert [(side, order.order_id) for side, order in orders] == [(Side.BID, 0), (Side.ASK, 2)]

    @pytest.mark.asyncio
    async def test_scan_empty(self, ledger):
        assert await client_for(ledger).get_markets() == []


class TestAdminOperations:
    @pytest.mark.asyncio
    async def test_initialize(self, ledger):
        keypair = Keypair()
        client = client_for(ledger, keypair)

        await client.send(await client.initialize(5, 50))

        config = await client.get_global_config()
        assert config == GlobalConfig(keypair.pubkey(), 5, 50, 0, 0)

    @pytest.mark.asyncio
    async def test_initialize_twice(self, ledger):
        admin, _ = await setup_market(ledger)

        with pytest.raises(AccountExistsError):
            await admin.initialize(5, 50)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limits", [(0, 5), (5, 0)])
    async def test_initialize_rejects_zero_limits(self, ledger, limits):
        with pytest.raises(InvalidAmountError):
            await client_for(ledger, Keypair()).initialize(*limits)

    @pytest.mark.asyncio
    async def test_transfer_admin(self, ledger):
        admin, _ = await setup_market(ledger)
        new_admin = Pubkey.new_unique()

        await admin.send(await admin.transfer_admin(str(new_admin)))

        assert ledger.global_config().admin == new_admin

    @pytest.mark.asyncio
    async def test_transfer_admin_from_keyfile(self, ledger, tmp_path):
        admin, _ = await setup_market(ledger)
        new_admin = Keypair()
        keyfile = tmp_path / "new_admin.json"
        keyfile.write_text(json.dumps(list(bytes(new_admin))))

        await admin.send(await admin.transfer_admin(str(keyfile)))

        assert ledger.global_config().admin == new_admin.pubkey()

    @pytest.mark.asyncio
    async def test_transfer_admin_unauthorized(self, ledger):
        await setup_market(ledger)
        submitted = len(ledger.submitted)

        with pytest.raises(UnauthorizedError):
            await client_for(ledger, Keypair()).transfer_admin(Pubkey.new_unique())

        assert len(ledger.submitted) == submitted

    @pytest.mark.asyncio
    async def test_change_config_updates_supplied_fields_only(self, ledger):
        admin, _ = await setup_market(ledger, per_user=3, per_book=4)

        await admin.send(await admin.change_config(max_orders_per_book=9))

        config = ledger.global_config()
        assert (config.max_orders_per_user, config.max_orders_per_book) == (3, 9)

    @pytest.mark.asyncio
    async def test_change_config_needs_a_field(self, ledger):
        admin, _ = await setup_market(ledger)

        with pytest.raises(InvalidAmountError):
            await admin.change_config()

    @pytest.mark.asyncio
    async def test_change_config_rejects_zero(self, ledger):
        admin, _ = await setup_market(ledger)

        with pytest.raises(InvalidAmountError):
            await admin.change_config(max_orders_per_user=0)


class TestMarketOperations:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("width", [4, 8])
    async def test_create_market_at_seq_three(self, width):
        ledger = FakeLedger(market_seed_width=width)
        keypair = Keypair()
        ledger.put(get_global_config_pda()[0], GlobalConfig(keypair.pubkey(), 10, 10, 3, 3))
        client = client_for(ledger, keypair, width)
        base = Pubkey.new_unique()
        quote = Pubkey.new_unique()

        await client.send(await client.create_market(base, quote, "SOL/USDC"))

        address, _ = get_market_pda(3, seed_width=width)
        market = await client.get_market(address)
        assert await client.get_market_by_seq(3) == market
        assert market.seed == 3
        assert market.name == "SOL/USDC"
        assert market.market_authority == keypair.pubkey()
        assert (market.base_mint, market.quote_mint) == (base, quote)
        assert market.order_seq_num == 0
        for side in Side:
            book = await client.get_book(address, side)
            assert book.orders == [] and book.orders_count == 0
            assert book.market == address
        config = await client.get_global_config()
        assert config.market_seq_num == 4
        assert config.total_market_count == 4

    @pytest.mark.asyncio
    async def test_market_sequence_is_monotonic(self, ledger):
        admin, _ = await setup_market(ledger)
        for name in ("B", "C"):
            await admin.send(await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), name))

        seeds = [m.seed for _, m in await admin.get_markets()]

        assert seeds == [0, 1, 2]
        assert ledger.global_config().market_seq_num == 3

    @pytest.mark.asyncio
    async def test_create_market_with_wrong_seed_width_rejected(self):
        ledger = FakeLedger(market_seed_width=4)
        admin, _ = await setup_market(ledger, width=4)
        modern = HybridDexClient(Session(connection=ledger, signer=admin.session.signer, market_seed_width=8))
        before = dict(ledger.accounts)

        with pytest.raises(RemoteRejectedError) as exc_info:
            await modern.send(await modern.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "B"))

        assert "ConstraintSeeds" in exc_info.value.message
        assert ledger.accounts == before

    @pytest.mark.asyncio
    async def test_create_market_needs_global_config(self, ledger):
        with pytest.raises(AccountNotFoundError):
            await client_for(ledger, Keypair()).create_market(Pubkey.new_unique(), Pubkey.new_unique(), "A")

    @pytest.mark.asyncio
    async def test_create_market_name_too_long(self, ledger):
        admin, _ = await setup_market(ledger)

        with pytest.raises(InvalidNameError):
            await admin.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "a-very-long-market-name")

    @pytest.mark.asyncio
    async def test_close_market_by_authority(self, ledger):
        admin, market = await setup_market(ledger)

        await admin.send(await admin.close_market(market))

        with pytest.raises(AccountNotFoundError):
            await admin.get_market(market)
        assert ledger.global_config().total_market_count == 0
        assert ledger.global_config().market_seq_num == 1

    @pytest.mark.asyncio
    async def test_close_market_by_admin(self, ledger):
        admin, _ = await setup_market(ledger)
        creator = client_for(ledger, Keypair())
        await creator.send(await creator.create_market(Pubkey.new_unique(), Pubkey.new_unique(), "B"))
        market = creator.get_market_address(1)

        await admin.send(await admin.close_market(market))

        with pytest.raises(AccountNotFoundError):
            await admin.get_market(market)

    @pytest.mark.asyncio
    async def test_close_market_unauthorized(self, ledger):
        _, market = await setup_market(ledger)

        with pytest.raises(UnauthorizedError):
            await client_for(ledger, Keypair()).close_market(market)

    @pytest.mark.asyncio
    async def test_create_open_orders(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)

        record = await trader.get_user_market_orders(market, trader.session.identity)

        assert record.address == trader.session.identity
        assert record.market == market
        assert record.opened_orders_count == 0

    @pytest.mark.asyncio
    async def test_create_open_orders_twice(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)

        with pytest.raises(AccountExistsError):
            await trader.create_open_orders(market)

    @pytest.mark.asyncio
    async def test_create_open_orders_missing_market(self, ledger):
        await setup_market(ledger)

        with pytest.raises(AccountNotFoundError):
            await client_for(ledger, Keypair()).create_open_orders(Pubkey.new_unique())


class TestPlaceOrder:
    @pytest.mark.asyncio
    async def test_bids_keep_price_time_priority(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        for price in (100, 120, 100, 90):
            await place(trader, market, Side.BID, price)

        book = await trader.get_book(market, Side.BID)

        assert [(o.price, o.order_id) for o in book.orders] == [(120, 1), (100, 0), (100, 2), (90, 3)]
        assert book.is_price_time_ordered()

    @pytest.mark.asyncio
    async def test_asks_keep_price_time_priority(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        for price in (100, 80, 100):
            await place(trader, market, "sell", price)

        book = await trader.get_book(market, Side.ASK)

        assert [(o.price, o.order_id) for o in book.orders] == [(80, 1), (100, 0), (100, 2)]

    @pytest.mark.asyncio
    async def test_order_ids_unique_across_sides(self, ledger):
        _, market = await setup_market(ledger)
        alice = await open_trader(ledger, market)
        bob = await open_trader(ledger, market)
        await place(alice, market, Side.BID, 100)
        await place(bob, market, Side.ASK, 110)
        await place(alice, market, Side.ASK, 120)

        ids = [o.order_id for side in Side for o in (await alice.get_book(market, side)).orders]

        assert sorted(ids) == [0, 1, 2]
        assert (await alice.get_market(market)).order_seq_num == 3

    @pytest.mark.asyncio
    async def test_record_tracks_escrow(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        await place(trader, market, Side.BID, 100, quantity=7)
        await place(trader, market, Side.ASK, 100, quantity=3)

        record = ledger.user_orders(market, trader.session.identity)

        assert record.opened_orders_count == 2
        assert (record.quote_deposit_total, record.base_deposit_total) == (7, 3)

    @pytest.mark.asyncio
    async def test_place_without_record(self, ledger):
        _, market = await setup_market(ledger)
        client = client_for(ledger, Keypair())

        with pytest.raises(AccountNotFoundError):
            await client.place_order(PlaceOrderParams(client.session.identity, market, Side.BID, 1, 1))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price,quantity", [(0, 1), (1, 0), (2**64, 1)])
    async def test_place_rejects_bad_amounts(self, ledger, price, quantity):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)

        with pytest.raises(InvalidAmountError):
            await trader.place_order(
                PlaceOrderParams(trader.session.identity, market, Side.BID, price, quantity)
            )

    @pytest.mark.asyncio
    async def test_per_user_capacity(self, ledger):
        _, market = await setup_market(ledger, per_user=1)
        trader = await open_trader(ledger, market)
        await place(trader, market, Side.BID, 100)
        before = dict(ledger.accounts)

        with pytest.raises(CapacityExceededError):
            await place(trader, market, Side.ASK, 100)

        assert ledger.accounts == before
        assert ledger.user_orders(market, trader.session.identity).opened_orders_count == 1

    @pytest.mark.asyncio
    async def test_book_capacity(self, ledger):
        _, market = await setup_market(ledger, per_book=2)
        alice = await open_trader(ledger, market)
        bob = await open_trader(ledger, market)
        await place(alice, market, Side.BID, 100)
        await place(bob, market, Side.BID, 101)
        before = dict(ledger.accounts)

        with pytest.raises(CapacityExceededError):
            await place(alice, market, Side.BID, 102)

        assert ledger.accounts == before
        # The other side of the book is unaffected
        await place(alice, market, Side.ASK, 110)

    @pytest.mark.asyncio
    async def test_place_on_mismatched_book(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        ledger.put(get_bids_pda(market)[0], Book(side=Side.ASK, market=market))

        with pytest.raises(InvalidSideError):
            await trader.place_order(PlaceOrderParams(trader.session.identity, market, Side.BID, 1, 1))

    @pytest.mark.asyncio
    async def test_place_for_another_maker(self, ledger):
        _, market = await setup_market(ledger)
        alice = await open_trader(ledger, market)
        bob = await open_trader(ledger, market)
        before = dict(ledger.accounts)

        with pytest.raises(UnauthorizedError) as exc_info:
            await bob.place_order(PlaceOrderParams(alice.session.identity, market, Side.BID, 1, 1))

        assert exc_info.value.caller == str(bob.session.identity)
        assert ledger.accounts == before


class TestCancelOrder:
    @pytest.mark.asyncio
    async def test_cancel(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        for price in (100, 110, 90):
            await place(trader, market, Side.BID, price, quantity=5)

        params = CancelOrderParams(trader.session.identity, market, Side.BID, 0)
        await trader.send(await trader.cancel_order(params))

        book = ledger.book(market, Side.BID)
        record = ledger.user_orders(market, trader.session.identity)
        assert [o.order_id for o in book.orders] == [1, 2]
        assert book.orders_count == 2
        assert record.opened_orders_count == 2
        assert record.quote_deposit_total == 10

    @pytest.mark.asyncio
    async def test_cancel_missing_order(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)

        with pytest.raises(OrderNotFoundError) as exc_info:
            await trader.cancel_order(CancelOrderParams(trader.session.identity, market, Side.ASK, 7))

        assert exc_info.value.order_id == 7

    @pytest.mark.asyncio
    async def test_cancel_on_other_side(self, ledger):
        _, market = await setup_market(ledger)
        trader = await open_trader(ledger, market)
        await place(trader, market, Side.BID, 100)

        with pytest.raises(OrderNotFoundError):
            await trader.cancel_order(CancelOrderParams(trader.session.identity, market, Side.ASK, 0))

    @pytest.mark.asyncio
    async def test_cancel_someone_elses_order(self, ledger):
        _, market = await setup_market(ledger)
        alice = await open_trader(ledger, market)
        bob = await open_trader(ledger, market)
        await place(alice, market, Side.BID, 100)

        with pytest.raises(UnauthorizedError):
            await bob.cancel_order(CancelOrderParams(bob.session.identity, market, Side.BID, 0))

    @pytest.mark.asyncio
    async def test_cancel_as_another_maker(self, ledger):
        _, market = await setup_market(ledger)
        alice = await open_trader(ledger, market)
        bob = await open_trader(ledger, market)
        await place(alice, market, Side.BID, 100)
        before = dict(ledger.accounts)

        with pytest.raises(UnauthorizedError) as exc_info:
            await bob.cancel_order(CancelOrderParams(alice.session.identity, market, Side.BID, 0))

        assert exc_info.value.caller == str(bob.session.identity)
        assert ledger.accounts == before
        assert ledger.book(market, Side.BID).find_order(0) is not None


class TestTakeOrder:
    async def _book_with_orders(self, ledger):
        _, market = await setup_market(ledger)
        maker = await open_trader(ledger, market)
        taker = await open_trader(ledger, market)
        for price in (100, 100, 90):
            await place(maker, market, Side.ASK, price, quantity=10)
        return market, maker, taker

    @pytest.mark.asyncio
    async def test_take_full(self, ledger):
        market, maker, taker = await self._book_with_orders(ledger)

        params = TakeOrderParams(taker.session.identity, maker.session.identity, market, Side.ASK, 2)
        await taker.send(await taker.take_order(params))

        book = ledger.book(market, Side.ASK)
        assert [o.order_id for o in book.orders] == [0, 1]
        assert ledger.user_orders(market, maker.session.identity).opened_orders_count == 2
        assert ledger.user_orders(market, maker.session.identity).base_deposit_total == 20

    @pytest.mark.asyncio
    async def test_partial_take_keeps_position(self, ledger):
        market, maker, taker = await self._book_with_orders(ledger)
        position = ledger.book(market, Side.ASK).position_of(0)

        params = PartialTakeOrderParams(
            taker.session.identity, maker.session.identity, market, Side.ASK, 0, 4
        )
        await taker.send(await taker.partial_take_order(params))

        book = ledger.book(market, Side.ASK)
        assert book.position_of(0) == position
        assert book.find_order(0).quantity == 6
        assert book.orders_count == 3
        assert book.is_price_time_ordered()

    @pytest.mark.asyncio
    async def test_partial_then_full_take_removes_order(self, ledger):
        market, maker, taker = await self._book_with_orders(ledger)
        position = ledger.book(market, Side.ASK).position_of(0)
        maker_key = maker.session.identity

        partial = PartialTakeOrderParams(taker.session.identity, maker_key, market, Side.ASK, 0, 4)
        await taker.send(await taker.partial_take_order(partial))

        book = ledger.book(market, Side.ASK)
        assert book.position_of(0) == position
        assert book.find_order(0).quantity == 6
        assert ledger.user_orders(market, maker_key).base_deposit_total == 26

        full = TakeOrderParams(taker.session.identity, maker_key, market, Side.ASK, 0)
        await taker.send(await taker.take_order(full))

        book = ledger.book(market, Side.ASK)
        record = ledger.user_orders(market, maker_key)
        assert book.find_order(0) is None
        assert book.orders_count == 2
        assert [o.order_id for o in book.orders] == [2, 1]
        assert record.opened_orders_count == 2
        assert record.base_deposit_total == sum(o.quantity for o in book.orders) == 20

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, 10, 11])
    async def test_partial_take_amount_bounds(self, ledger, amount):
        market, maker, taker = await self._book_with_orders(ledger)

        params = PartialTakeOrderParams(
            taker.session.identity, maker.session.identity, market, Side.ASK, 0, amount
        )
        with pytest.raises(InvalidAmountError):
            await taker.partial_take_order(params)

    @pytest.mark.asyncio
    async def test_take_requires_taker_record(self, ledger):
        market, maker, _ = await self._book_with_orders(ledger)
        stranger = client_for(ledger, Keypair())

        params = TakeOrderParams(stranger.session.identity, maker.session.identity, market, Side.ASK, 0)
        with pytest.raises(AccountNotFoundError):
            await stranger.take_order(params)

    @pytest.mark.asyncio
    async def test_take_with_wrong_maker(self, ledger):
        market, _, taker = await self._book_with_orders(ledger)

        params = TakeOrderParams(taker.session.identity, taker.session.identity, market, Side.ASK, 0)
        with pytest.raises(UnauthorizedError):
            await taker.take_order(params)

    @pytest.mark.asyncio
    async def test_take_for_another_taker(self, ledger):
        market, maker, taker = await self._book_with_orders(ledger)
        other = await open_trader(ledger, market)

        full = TakeOrderParams(other.session.identity, maker.session.identity, market, Side.ASK, 0)
        partial = PartialTakeOrderParams(
            other.session.identity, maker.session.identity, market, Side.ASK, 0, 4
        )
        with pytest.raises(UnauthorizedError):
            await taker.take_order(full)
        with pytest.raises(UnauthorizedError):
            await taker.partial_take_order(partial)

        assert ledger.book(market, Side.ASK).find_order(0).quantity == 10

    @pytest.mark.asyncio
    async def test_take_missing_order(self, ledger):
        market, maker, taker = await self._book_with_orders(ledger)

        params = TakeOrderParams(taker.session.identity, maker.session.identity, market, Side.BID, 0)
        with pytest.raises(OrderNotFoundError):
            await taker.take_order(params)


class TestSend:
    @pytest.mark.asyncio
    async def test_rejection_keeps_message(self, ledger):
        admin, market = await setup_market(ledger)
        tx = await admin.close_market(market)
        await admin.send(await admin.close_market(market))

        with pytest.raises(RemoteRejectedError) as exc_info:
            await admin.send(tx)

        assert "AccountNotInitialized" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_send_without_signer(self, ledger):
        reader = client_for(ledger)
        writer = client_for(ledger, Keypair())
        tx = await writer.initialize(1, 1)

        with pytest.raises(KeypairError):
            await reader.send(tx)

    @pytest.mark.asyncio
    async def test_operations_need_signer(self, ledger):
        with pytest.raises(KeypairError):
            await client_for(ledger).initialize(1, 1)

    @pytest.mark.asyncio
    async def test_payer_is_signer(self, ledger):
        keypair = Keypair()
        tx = await client_for(ledger, keypair).initialize(1, 1)

        assert tx.message.account_keys[0] == keypair.pubkey()
