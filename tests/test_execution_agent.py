"""Tests for the execution agent."""
import threading
from unittest.mock import patch

import pytest

from agents.execution_agent import REASON_NO_PRICE, REASON_PERSIST_FAILED, ExecutionAgent
from config.settings import TradingSettings
from core.trading_context import TradingContext
from core.trading_mode_gate import (
    REASON_APPROVED,
    REASON_COOLDOWN,
    REASON_HOLD,
    REASON_MANUAL,
    REASON_NO_DATA,
)
from models.enums import MarketRegime, RecommendationAction, TradeAction, TradeSource, TradingMode
from utils.exceptions import PersistenceError


@pytest.fixture
def execution_agent(mock_config, autopilot_context, database):
    return ExecutionAgent(config=mock_config, context=autopilot_context, database=database)


@pytest.mark.unit
class TestAutomaticExecution:
    """ExecutionAgent.process."""

    def test_autopilot_buy_is_recorded(self, execution_agent, database, make_recommendation,
                                       make_regime, make_risk):
        result = execution_agent.process(
            "BTCUSDT", make_recommendation(confidence=80), make_regime(), make_risk(), 50000.0
        )

        assert result.executed is True
        assert result.reason == REASON_APPROVED
        trade = result.trade
        # 0.02 * 0.8 * (0.02 / 0.01) = 0.032, capped at max_risk_per_trade
        assert trade.position_size_fraction == pytest.approx(0.02)
        assert trade.quantity == pytest.approx(0.02)
        assert trade.nav_before == 10000.0
        assert trade.nav_after == pytest.approx(9800.0)
        assert trade.action == TradeAction.AUTO_BUY
        assert trade.source == TradeSource.AI
        assert trade.mode == TradingMode.AUTOPILOT
        assert trade.regime == MarketRegime.BULLISH
        assert trade.trade_id.startswith("auto-")
        assert trade.notes == "Automatic execution: 80% confidence"
        assert trade.correlation_cluster == ("BTCUSDT",)

        assert execution_agent.nav == pytest.approx(9800.0)
        assert len(database.get_trade_history()) == 1
        assert execution_agent.context.cooldowns.status("BTCUSDT").in_cooldown is True

    def test_sell_adds_to_nav(self, execution_agent, make_recommendation, make_regime, make_risk):
        result = execution_agent.process(
            "BTCUSDT", make_recommendation(RecommendationAction.SELL), make_regime(), make_risk(), 50000.0
        )

        assert result.trade.action == TradeAction.AUTO_SELL
        assert result.trade.nav_after == pytest.approx(10200.0)

    def test_second_cycle_hits_cooldown(self, execution_agent, database, clock,
                                        make_recommendation, make_regime, make_risk):
        args = ("BTCUSDT", make_recommendation(), make_regime(), make_risk(), 50000.0)

        assert execution_agent.process(*args).executed is True
        second = execution_agent.process(*args)
        assert second.executed is False
        assert second.reason == REASON_COOLDOWN

        clock.advance(300001)
        assert execution_agent.process(*args).executed is True
        assert len(database.get_trade_history()) == 2

    def test_manual_mode_never_executes(self, mock_config, clock, database, make_recommendation,
                                        make_regime, make_risk):
        context = TradingContext.from_settings(TradingSettings(mode=TradingMode.MANUAL), clock)
        agent = ExecutionAgent(config=mock_config, context=context, database=database)

        result = agent.process("BTCUSDT", make_recommendation(confidence=100), make_regime(), make_risk(), 50000.0)

        assert result.executed is False
        assert result.reason == REASON_MANUAL
        assert database.get_trade_history() == []

    def test_drawdown_blocks(self, execution_agent, database, make_recommendation, make_regime, make_risk):
        result = execution_agent.process(
            "BTCUSDT", make_recommendation(), make_regime(), make_risk(portfolio_drawdown=2.0), 50000.0
        )

        assert result.executed is False
        assert "drawdown" in result.reason
        assert database.get_trade_history() == []
        assert execution_agent.context.cooldowns.status("BTCUSDT").in_cooldown is False

    def test_missing_regime_blocks(self, execution_agent, make_recommendation, make_risk):
        result = execution_agent.process("BTCUSDT", make_recommendation(), None, make_risk(), 50000.0)
        assert result.reason == REASON_NO_DATA

    def test_missing_risk_blocks(self, execution_agent, make_recommendation, make_regime):
        result = execution_agent.process("BTCUSDT", make_recommendation(), make_regime(), None, 50000.0)

        assert result.executed is False
        assert "Risk data unavailable" in result.reason

    def test_paper_hold_is_not_recorded(self, mock_config, clock, database, make_recommendation,
                                        make_regime, make_risk):
        context = TradingContext.from_settings(TradingSettings(mode=TradingMode.PAPER), clock)
        agent = ExecutionAgent(config=mock_config, context=context, database=database)

        result = agent.process(
            "BTCUSDT", make_recommendation(RecommendationAction.HOLD), make_regime(), make_risk(), 50000.0
        )

        assert result.executed is False
        assert result.reason == REASON_HOLD
        assert database.get_trade_history() == []

    def test_paper_trade_is_recorded_with_paper_mode(self, mock_config, clock, database,
                                                     make_recommendation, make_regime, make_risk):
        context = TradingContext.from_settings(TradingSettings(mode=TradingMode.PAPER), clock)
        agent = ExecutionAgent(config=mock_config, context=context, database=database)

        result = agent.process("BTCUSDT", make_recommendation(confidence=30), make_regime(), make_risk(), 50000.0)

        assert result.executed is True
        assert result.trade.mode == TradingMode.PAPER

    @pytest.mark.parametrize("price", [None, 0.0, -5.0, float("nan")])
    def test_bad_price(self, execution_agent, make_recommendation, make_regime, make_risk, price):
        result = execution_agent.process("BTCUSDT", make_recommendation(), make_regime(), make_risk(), price)

        assert result.executed is False
        assert result.reason == REASON_NO_PRICE

    def test_persistence_failure_leaves_state_unchanged(self, execution_agent, make_recommendation,
                                                        make_regime, make_risk):
        with patch.object(execution_agent.database, "save_trade", side_effect=PersistenceError("disk full")):
            result = execution_agent.process(
                "BTCUSDT", make_recommendation(), make_regime(), make_risk(), 50000.0
            )

        assert result.executed is False
        assert result.reason == REASON_PERSIST_FAILED
        assert execution_agent.nav == 10000.0
        assert execution_agent.context.cooldowns.status("BTCUSDT").in_cooldown is False

    def test_stop_levels_from_history(self, execution_agent, bullish_history, make_recommendation,
                                      make_regime, make_risk):
        price = bullish_history.prices[-1]
        result = execution_agent.process(
            "BTCUSDT", make_recommendation(), make_regime(), make_risk(), price, bullish_history
        )

        trade = result.trade
        assert trade.stop_loss is not None
        assert trade.take_profit is not None
        assert trade.stop_loss < price < trade.take_profit
        assert trade.take_profit - price == pytest.approx(2 * (price - trade.stop_loss))

    def test_stops_disabled(self, mock_config, clock, database, bullish_history, make_recommendation,
                            make_regime, make_risk):
        settings = TradingSettings(mode=TradingMode.AUTOPILOT, enable_stop_loss=False, enable_take_profit=False)
        agent = ExecutionAgent(
            config=mock_config, context=TradingContext.from_settings(settings, clock), database=database
        )
        result = agent.process(
            "BTCUSDT", make_recommendation(), make_regime(), make_risk(), 100.0, bullish_history
        )

        assert result.trade.stop_loss is None
        assert result.trade.take_profit is None

    def test_concurrent_cycles_execute_once(self, execution_agent, database, make_recommendation,
                                            make_regime, make_risk):
        args = ("BTCUSDT", make_recommendation(), make_regime(), make_risk(), 50000.0)
        barrier = threading.Barrier(8)
        results = []
        results_lock = threading.Lock()

        def cycle():
            barrier.wait(5)
            result = execution_agent.process(*args)
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=cycle) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert len(results) == 8
        assert sum(1 for r in results if r.executed) == 1
        assert all(r.reason == REASON_COOLDOWN for r in results if not r.executed)
        assert len(database.get_trade_history()) == 1


@pytest.mark.unit
class TestManualExecution:
    """ExecutionAgent.execute_manual."""

    def test_manual_buy(self, execution_agent, make_recommendation, make_regime, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.BUY, make_recommendation(), make_regime(), make_risk(), 50000.0
        )

        assert result.executed is True
        trade = result.trade
        assert trade.action == TradeAction.MANUAL_BUY
        assert trade.source == TradeSource.MANUAL
        assert trade.position_size_fraction == 0.01
        assert trade.nav_after == pytest.approx(9900.0)
        assert trade.trade_id.startswith("manual-")
        assert trade.notes == "Manual execution by user"
        # Manual trades do not start a cooldown
        assert execution_agent.context.cooldowns.status("BTCUSDT").in_cooldown is False

    def test_manual_during_cooldown(self, execution_agent, make_recommendation, make_regime, make_risk):
        execution_agent.context.cooldowns.set("BTCUSDT", 60000)
        result = execution_agent.execute_manual(
            "BTCUSDT", "sell", make_recommendation(), make_regime(), make_risk(), 50000.0
        )

        assert result.executed is True
        assert result.trade.action == TradeAction.MANUAL_SELL

    def test_halted_regime_blocks_without_override(self, execution_agent, make_recommendation,
                                                   make_regime, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.BUY, make_recommendation(),
            make_regime(MarketRegime.CRASH_IMMINENT), make_risk(), 50000.0
        )

        assert result.executed is False
        assert "CRASH_IMMINENT" in result.reason

    def test_override_allows_halted_regime(self, execution_agent, make_recommendation, make_regime, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.BUY, make_recommendation(),
            make_regime(MarketRegime.CRASH_IMMINENT), make_risk(portfolio_drawdown=3.0), 50000.0,
            override_risk=True
        )

        assert result.executed is True
        assert result.trade.regime == MarketRegime.CRASH_IMMINENT

    def test_override_cannot_bypass_missing_data(self, execution_agent, make_recommendation, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.BUY, make_recommendation(), None, make_risk(), 50000.0,
            override_risk=True
        )
        assert result.executed is False

    def test_hold_rejected(self, execution_agent, make_recommendation, make_regime, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.HOLD, make_recommendation(), make_regime(), make_risk(), 50000.0
        )

        assert result.executed is False
        assert result.reason == REASON_HOLD

    def test_no_recommendation(self, execution_agent, make_regime, make_risk):
        result = execution_agent.execute_manual(
            "BTCUSDT", RecommendationAction.BUY, None, make_regime(), make_risk(), 50000.0
        )
        assert result.executed is False


@pytest.mark.unit
class TestNavRestore:
    """NAV survives a restart through the trade store."""

    def test_restored_from_last_trade(self, mock_config, autopilot_context, database, make_trade):
        database.save_trade(make_trade(nav_before=10000.0, nav_after=9800.0, minutes=0))
        database.save_trade(make_trade(nav_before=9800.0, nav_after=9604.0, minutes=5))

        agent = ExecutionAgent(config=mock_config, context=autopilot_context, database=database)
        assert agent.nav == 9604.0

    def test_starting_nav_when_empty(self, execution_agent):
        assert execution_agent.nav == 10000.0

    def test_health_check(self, execution_agent):
        health = execution_agent.health_check()

        assert health["status"] == "healthy"
        assert health["nav"] == 10000.0
        assert health["database"] == "healthy"
