"""Tests for trade execution (buy/sell settlement against a portfolio)."""

import json
import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from tradegame.clock import utcnow
from tradegame.config import settings
from tradegame.database import Base
from tradegame.exceptions import (
    ConflictingState,
    GameEnded,
    GameNotFound,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidQuantity,
    PlayerNotActive,
    PlayerNotFound,
    QuoteSourceError,
    QuoteUnavailable,
)
from tradegame.models.player import Player
from tradegame.models.snapshot import PortfolioSnapshot
from tradegame.models.transaction import Transaction
from tradegame.services import trade_service
from tradegame.services.locks import player_locks


def _holdings(player):
    return {h.symbol: h.quantity for h in player.holdings}


def _end_game(db, game):
    game.end_time = utcnow() - timedelta(seconds=1)
    db.commit()


class TestBuy:
    """Buying debits fee and cost and grows the holding."""

    def test_buy_scenario(self, db, quotes, make_player):
        """cash=1000, buy 5 @ 100 -> 1000 - 1 - 500 = 499."""
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)

        db.refresh(player)
        assert player.cash == Decimal("499")
        assert _holdings(player) == {"AAPL": 5}

    def test_buy_adds_to_existing_holding(self, db, quotes, make_player):
        player = make_player(cash="5000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        quotes.set_price("AAPL", "120")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)

        db.refresh(player)
        holding = player.holdings[0]
        assert holding.quantity == 10
        assert holding.stock_price == Decimal("120")
        assert holding.average_cost == Decimal("110")
        assert player.cash == Decimal("5000") - 2 - 500 - 600

    def test_buy_normalizes_symbol(self, db, quotes, make_player):
        player = make_player()
        trade = trade_service.buy(db, quotes, player.id, " aapl ", 1)
        assert trade.symbol == "AAPL"
        assert quotes.calls == ["AAPL"]

    def test_buy_with_exact_funds(self, db, quotes, make_player):
        """Cash equal to cost plus fee is enough and leaves zero."""
        player = make_player(cash="101")
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        db.refresh(player)
        assert player.cash == Decimal("0")

    def test_insufficient_funds_leaves_state_untouched(self, db, quotes, make_player):
        """cash < price*quantity + fee must fail without any mutation."""
        player = make_player(cash="100")

        with pytest.raises(InsufficientFunds):
            trade_service.buy(db, quotes, player.id, "AAPL", 1)

        db.refresh(player)
        assert player.cash == Decimal("100")
        assert player.holdings == []
        assert player.history == []
        assert db.query(Transaction).count() == 0

    def test_buy_records_transaction(self, db, quotes, make_player):
        player = make_player()
        trade = trade_service.buy(db, quotes, player.id, "MSFT", 2)

        assert trade.type == "buy"
        assert trade.symbol == "MSFT"
        assert trade.quantity == 2
        assert trade.unit_price == Decimal("250")
        assert trade.total_cost == Decimal("500")
        assert trade.fee == Decimal("1")
        assert trade.player_username == "alice"
        assert trade.created_at is not None

    def test_fee_is_configurable(self, db, quotes, make_player, monkeypatch):
        monkeypatch.setattr(settings, "TRADE_FEE", "2.50")
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        db.refresh(player)
        assert player.cash == Decimal("897.50")


class TestSell:
    """Selling charges the fee, credits proceeds and shrinks the holding."""

    def test_sell_scenario(self, db, quotes, make_player):
        """After buying 5 @ 100, selling 5 @ 110 -> 499 - 1 + 550 = 1048."""
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        quotes.set_price("AAPL", "110")
        trade_service.sell(db, quotes, player.id, "AAPL", 5)

        db.refresh(player)
        assert player.cash == Decimal("1048")
        assert _holdings(player) == {}

    def test_partial_sell_keeps_holding(self, db, quotes, make_player):
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        quotes.set_price("AAPL", "90")
        trade_service.sell(db, quotes, player.id, "AAPL", 2)

        db.refresh(player)
        assert _holdings(player) == {"AAPL": 3}
        # Recorded price stays at the last buy
        assert player.holdings[0].stock_price == Decimal("100")
        assert player.cash == Decimal("499") - 1 + 180

    def test_sell_more_than_held_fails_without_mutation(self, db, quotes, make_player):
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        db.refresh(player)
        history_before = len(player.history)

        with pytest.raises(InsufficientHoldings):
            trade_service.sell(db, quotes, player.id, "AAPL", 6)

        db.refresh(player)
        assert player.cash == Decimal("499")
        assert _holdings(player) == {"AAPL": 5}
        assert len(player.history) == history_before
        assert db.query(Transaction).count() == 1

    def test_sell_absent_holding_fails(self, db, quotes, make_player):
        player = make_player(cash="1000")
        with pytest.raises(InsufficientHoldings):
            trade_service.sell(db, quotes, player.id, "MSFT", 1)

        db.refresh(player)
        assert player.cash == Decimal("1000")

    def test_sell_cannot_drive_cash_negative(self, db, quotes, make_player):
        """Proceeds smaller than the fee with no cash left are rejected."""
        player = make_player(cash="101")
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        quotes.set_price("AAPL", "0.5")

        with pytest.raises(InsufficientFunds):
            trade_service.sell(db, quotes, player.id, "AAPL", 1)

        db.refresh(player)
        assert player.cash == Decimal("0")
        assert _holdings(player) == {"AAPL": 1}


class TestPreconditions:
    """Validation that happens before any money moves."""

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, True, "2"])
    def test_invalid_quantity(self, db, quotes, make_player, quantity):
        player = make_player()
        with pytest.raises(InvalidQuantity):
            trade_service.buy(db, quotes, player.id, "AAPL", quantity)
        with pytest.raises(InvalidQuantity):
            trade_service.sell(db, quotes, player.id, "AAPL", quantity)

    def test_unknown_player(self, db, quotes):
        with pytest.raises(PlayerNotFound):
            trade_service.buy(db, quotes, "missing", "AAPL", 1)
        with pytest.raises(PlayerNotFound):
            trade_service.sell(db, quotes, "missing", "AAPL", 1)

    def test_inactive_player_is_rejected_before_quoting(self, db, quotes, make_player):
        player = make_player(active=False)
        with pytest.raises(PlayerNotActive):
            trade_service.buy(db, quotes, player.id, "AAPL", 1)
        assert quotes.calls == []

    def test_unknown_symbol(self, db, quotes, make_player):
        player = make_player()
        with pytest.raises(QuoteUnavailable):
            trade_service.buy(db, quotes, player.id, "NOPE", 1)

    def test_quote_failure_leaves_state_untouched(self, db, quotes, make_player):
        class BrokenQuotes(type(quotes)):
            def get_price(self, symbol):
                raise QuoteSourceError("upstream down")

        player = make_player(cash="1000")
        with pytest.raises(QuoteSourceError):
            trade_service.buy(db, BrokenQuotes(), player.id, "AAPL", 1)

        db.refresh(player)
        assert player.cash == Decimal("1000")
        assert player.history == []


class TestAtomicity:
    """Trades commit as one unit and serialize per player."""

    def test_stale_write_becomes_conflict(self, db, quotes, make_player, monkeypatch):
        player = make_player(cash="1000")

        def stale_commit():
            raise StaleDataError("row version mismatch")

        monkeypatch.setattr(db, "commit", stale_commit)
        with pytest.raises(ConflictingState):
            trade_service.buy(db, quotes, player.id, "AAPL", 1)
        monkeypatch.undo()

        db.refresh(player)
        assert player.cash == Decimal("1000")
        assert player.holdings == []

    def test_busy_player_lock_times_out(self, db, quotes, make_player, monkeypatch):
        monkeypatch.setattr(settings, "LOCK_TIMEOUT_SECONDS", 0.05)
        player = make_player(cash="1000")

        with player_locks.hold(player.id):
            with pytest.raises(ConflictingState):
                trade_service.buy(db, quotes, player.id, "AAPL", 1)

        db.refresh(player)
        assert player.cash == Decimal("1000")

    def test_parallel_buys_for_one_player_serialize(self, tmp_path, quotes):
        """Concurrent buys, each on its own session, apply one after another."""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'trades.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        workers = 8

        try:
            with Session() as setup:
                player = Player(
                    username="alice",
                    email="alice@example.com",
                    password_hash="unused",
                    cash=Decimal("1000"),
                    active=True,
                )
                setup.add(player)
                setup.commit()
                player_id = player.id

            start = threading.Barrier(workers)
            errors = []

            def trade():
                session = Session()
                try:
                    start.wait()
                    trade_service.buy(session, quotes, player_id, "AAPL", 1)
                except Exception as e:
                    errors.append(e)
                finally:
                    session.close()

            threads = [threading.Thread(target=trade) for _ in range(workers)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert errors == []
            with Session() as check:
                player = check.get(Player, player_id)
                assert player.cash == Decimal("1000") - workers * 101
                assert _holdings(player) == {"AAPL": workers}
                assert len(player.history) == workers
                assert check.query(Transaction).count() == workers
        finally:
            Base.metadata.drop_all(bind=engine)
            engine.dispose()

    def test_version_bumps_on_each_trade(self, db, quotes, make_player):
        player = make_player(cash="1000")
        start = player.version
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        db.refresh(player)
        assert player.version == start + 2


class TestGameWindow:
    """Trading closes at the end time of the player's current game."""

    def test_buy_after_end_time(self, db, quotes, make_player, make_game, enroll):
        game = make_game()
        player = enroll(make_player(active=False), game)
        _end_game(db, game)

        with pytest.raises(GameEnded):
            trade_service.buy(db, quotes, player.id, "AAPL", 1)

        db.refresh(player)
        assert player.cash == Decimal("1000")
        assert player.holdings == []
        assert player.history == []
        assert db.query(Transaction).count() == 0

    def test_sell_after_end_time(self, db, quotes, make_player, make_game, enroll):
        game = make_game()
        player = enroll(make_player(active=False), game)
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        _end_game(db, game)

        with pytest.raises(GameEnded):
            trade_service.sell(db, quotes, player.id, "AAPL", 5)

        db.refresh(player)
        assert player.cash == Decimal("499")
        assert _holdings(player) == {"AAPL": 5}
        assert len(player.history) == 1
        assert db.query(Transaction).count() == 1

    def test_trading_open_before_end_time(self, db, quotes, make_player, make_game, enroll):
        game = make_game(lasts=timedelta(hours=2))
        player = enroll(make_player(active=False), game)
        trade_service.buy(db, quotes, player.id, "AAPL", 1)

        db.refresh(player)
        assert _holdings(player) == {"AAPL": 1}


class TestHistory:
    """Snapshots capture the portfolio as it was before each trade."""

    def test_snapshot_is_pre_trade_state(self, db, quotes, make_player):
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 5)
        trade_service.sell(db, quotes, player.id, "AAPL", 2)

        history = trade_service.list_history(db, player.id)
        assert len(history) == 2
        assert history[0].cash == Decimal("1000")
        assert json.loads(history[0].holdings) == []
        assert history[1].cash == Decimal("499")
        assert json.loads(history[1].holdings) == [
            {"symbol": "AAPL", "quantity": 5, "stock_price": "100.0000"},
        ]
        assert db.query(PortfolioSnapshot).count() == 2

    def test_transactions_newest_first(self, db, quotes, make_player):
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 1)
        trade_service.buy(db, quotes, player.id, "MSFT", 1)

        trades = trade_service.list_transactions(db, player.id)
        assert len(trades) == 2
        assert {t.symbol for t in trades} == {"AAPL", "MSFT"}
        assert trades[0].created_at >= trades[1].created_at

    def test_transactions_scoped_to_game_window(self, db, quotes, make_player, make_game):
        player = make_player(cash="1000")
        trade_service.buy(db, quotes, player.id, "AAPL", 1)

        current = make_game()
        past = make_game(starts_in=timedelta(days=-10), lasts=timedelta(days=1))

        assert len(trade_service.list_transactions(db, player.id, game_id=current.id)) == 1
        assert trade_service.list_transactions(db, player.id, game_id=past.id) == []

    def test_transactions_unknown_game(self, db, make_player):
        player = make_player()
        with pytest.raises(GameNotFound):
            trade_service.list_transactions(db, player.id, game_id="missing")
