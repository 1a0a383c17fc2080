"""Tests for the trade store."""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models.enums import MarketRegime, TradeAction, TradeSource, TradingMode
from models.trade import TradeHistoryFilters
from utils.database import DatabaseManager
from utils.exceptions import PersistenceError


@pytest.fixture
def seeded(database, make_trade):
    """Store with a mix of automatic, manual and paper trades."""
    database.save_trade(make_trade(asset="BTCUSDT", minutes=0))
    database.save_trade(make_trade(
        asset="ETHUSDT", minutes=10, action=TradeAction.MANUAL_SELL,
        mode=TradingMode.MANUAL, source=TradeSource.MANUAL,
        nav_before=9800.0, nav_after=9898.0,
        ai_reason="Overbought after rally", notes="Manual execution by user"
    ))
    database.save_trade(make_trade(
        asset="BTCUSDT", minutes=20, mode=TradingMode.PAPER,
        regime=MarketRegime.VOLATILE, nav_before=9898.0, nav_after=9700.0
    ))
    return database


@pytest.mark.unit
class TestSaveTrade:
    """Inserting trades."""

    def test_save_assigns_id_and_created_at(self, database, make_trade):
        trade = make_trade(stop_loss=48000.0, take_profit=54000.0)
        stored = database.save_trade(trade)

        assert stored.id
        assert stored.created_at is not None
        assert stored.asset == "BTCUSDT"
        assert stored.action == TradeAction.AUTO_BUY
        assert stored.stop_loss == 48000.0
        assert stored.take_profit == 54000.0
        assert stored.correlation_cluster == ("BTCUSDT",)
        assert stored.timestamp == trade.timestamp
        assert stored.timestamp.tzinfo is not None

    def test_round_trip_through_query(self, database, make_trade):
        stored = database.save_trade(make_trade())
        (loaded,) = database.get_trade_history()

        assert loaded == stored

    def test_ids_are_unique(self, database, make_trade):
        first = database.save_trade(make_trade())
        second = database.save_trade(make_trade())
        assert first.id != second.id

    def test_insert_failure_raises_persistence_error(self, database, make_trade):
        with patch.object(database, "Session", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with pytest.raises(PersistenceError) as exc_info:
                database.save_trade(make_trade())
        assert exc_info.value.details["asset"] == "BTCUSDT"

    def test_query_failure_raises_persistence_error(self, database):
        with patch.object(database, "Session", side_effect=OperationalError("SELECT", {}, Exception("locked"))):
            with pytest.raises(PersistenceError):
                database.get_trade_history()

    def test_without_config_uses_memory(self, make_trade):
        db = DatabaseManager()
        db.save_trade(make_trade())
        assert len(db.get_trade_history()) == 1


@pytest.mark.unit
class TestTradeHistory:
    """Filtering and ordering."""

    def test_newest_first_by_default(self, seeded):
        trades = seeded.get_trade_history()
        assert [t.timestamp for t in trades] == sorted((t.timestamp for t in trades), reverse=True)

    def test_ascending(self, seeded):
        trades = seeded.get_trade_history(ascending=True)
        assert [t.nav_after for t in trades] == [9800.0, 9898.0, 9700.0]

    def test_limit(self, seeded):
        assert len(seeded.get_trade_history(limit=2)) == 2

    def test_filter_asset_is_case_insensitive(self, seeded):
        trades = seeded.get_trade_history(TradeHistoryFilters(asset="btcusdt"))
        assert {t.asset for t in trades} == {"BTCUSDT"}
        assert len(trades) == 2

    def test_filter_action_partial_match(self, seeded):
        sells = seeded.get_trade_history(TradeHistoryFilters(action="sell"))
        assert [t.action for t in sells] == [TradeAction.MANUAL_SELL]

        autos = seeded.get_trade_history(TradeHistoryFilters(action="AUTO"))
        assert len(autos) == 2

    def test_filter_mode_regime_source(self, seeded):
        assert len(seeded.get_trade_history(TradeHistoryFilters(mode=TradingMode.PAPER))) == 1
        assert len(seeded.get_trade_history(TradeHistoryFilters(regime=MarketRegime.BULLISH))) == 2
        assert len(seeded.get_trade_history(TradeHistoryFilters(source=TradeSource.MANUAL))) == 1

    def test_filter_date_range(self, seeded, clock):
        start = clock.now() + timedelta(minutes=5)
        end = clock.now() + timedelta(minutes=15)
        trades = seeded.get_trade_history(TradeHistoryFilters(date_from=start, date_to=end))
        assert [t.asset for t in trades] == ["ETHUSDT"]

    def test_search_reason_and_notes(self, seeded):
        assert len(seeded.get_trade_history(TradeHistoryFilters(search="overbought"))) == 1
        assert len(seeded.get_trade_history(TradeHistoryFilters(search="manual execution"))) == 1
        assert len(seeded.get_trade_history(TradeHistoryFilters(search="eth"))) == 1

    def test_empty_store(self, database):
        assert database.get_trade_history() == []


@pytest.mark.unit
class TestDailySummary:
    """Per-day aggregates."""

    def test_summary(self, seeded):
        summary = seeded.get_daily_summary(date(2025, 1, 1))

        assert summary.total_trades == 3
        assert summary.profitable_trades == 1
        assert summary.total_pnl == pytest.approx(-300.0)
        assert summary.best_trade.asset == "ETHUSDT"
        assert summary.worst_trade.nav_after == 9800.0
        assert summary.mode_breakdown == {"AUTOPILOT": 1, "MANUAL": 1, "PAPER": 1}
        assert summary.regime_breakdown == {"BULLISH": 2, "VOLATILE": 1}

    def test_other_day_is_empty(self, seeded):
        summary = seeded.get_daily_summary(date(2025, 1, 2))
        assert summary.total_trades == 0
        assert summary.best_trade is None

    def test_trade_at_next_midnight_belongs_to_next_day(self, database, make_trade):
        midnight = datetime(2025, 1, 2, tzinfo=timezone.utc)
        database.save_trade(make_trade(timestamp=midnight))

        assert database.get_daily_summary(date(2025, 1, 1)).total_trades == 0
        assert database.get_daily_summary(date(2025, 1, 2)).total_trades == 1


@pytest.mark.unit
def test_health_check(database):
    assert database.health_check()["status"] == "healthy"
