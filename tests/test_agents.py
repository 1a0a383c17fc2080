"""Tests for the regime and risk agents and the agent base class."""
from unittest.mock import patch

import pytest

from agents.base import BaseAgent
from agents.market_regime_agent import MarketRegimeAgent
from agents.risk_agent import RiskAgent
from models.enums import MarketRegime
from models.market_data import PriceHistory
from utils.exceptions import AdvisorError, AgentError, PersistenceError


class EchoAgent(BaseAgent):
    def process(self, value):
        return value


@pytest.mark.unit
class TestBaseAgent:
    """Shared agent behaviour."""

    def test_defaults_config(self):
        agent = EchoAgent()
        assert agent.config.trading is not None

    def test_correlation_id(self):
        agent = EchoAgent()
        first = agent.generate_correlation_id()
        second = agent.generate_correlation_id()

        assert first != second
        assert agent.correlation_id == second

    def test_handle_error_wraps_without_raising(self):
        agent = EchoAgent()
        agent.generate_correlation_id()

        error = agent.handle_error(ValueError("bad input"), {"symbol": "BTCUSDT"}, error_cls=AdvisorError)

        assert isinstance(error, AdvisorError)
        assert isinstance(error, AgentError)
        assert error.message == "bad input"
        assert error.details == {"symbol": "BTCUSDT"}
        assert error.correlation_id == agent.correlation_id

    def test_health_check(self):
        health = EchoAgent().health_check()
        assert health["agent"] == "EchoAgent"
        assert health["status"] == "healthy"


@pytest.mark.unit
class TestMarketRegimeAgent:
    """MarketRegimeAgent.process."""

    def test_classifies_history(self, mock_config, clock, bullish_history):
        agent = MarketRegimeAgent(config=mock_config, clock=clock)

        snapshot = agent.process(bullish_history)

        assert snapshot.regime == MarketRegime.BULLISH
        assert snapshot.allow_trading is True
        assert snapshot.timestamp == clock.now()
        assert agent.latest("BTCUSDT") == snapshot
        assert agent.health_check()["regimes"] == {"BTCUSDT": "BULLISH"}

    @pytest.mark.parametrize("history", [None, PriceHistory(symbol="BTCUSDT", samples=[])])
    def test_no_history_gives_no_snapshot(self, mock_config, history):
        agent = MarketRegimeAgent(config=mock_config)

        assert agent.process(history) is None
        assert agent.latest("BTCUSDT") is None


@pytest.mark.unit
class TestRiskAgent:
    """RiskAgent.process."""

    def test_empty_history(self, mock_config, database):
        agent = RiskAgent(config=mock_config, database=database)

        snapshot = agent.process(current_nav=10000.0)

        assert snapshot.portfolio_drawdown == 0
        assert snapshot.pause_trading is False
        assert agent.latest is snapshot

    def test_loss_pauses_with_default_threshold(self, mock_config, database, make_trade):
        database.save_trade(make_trade(nav_before=10000.0, nav_after=9800.0))
        agent = RiskAgent(config=mock_config, database=database)

        snapshot = agent.process(current_nav=9800.0)

        assert snapshot.portfolio_drawdown == pytest.approx(2.0)
        assert snapshot.pause_trading is True
        assert agent.health_check()["pause_trading"] is True

    def test_reads_earliest_and_trailing_window_only(self, mock_config, database, make_trade):
        navs = [10000.0 - 50 * i for i in range(16)]
        for i in range(15):
            database.save_trade(make_trade(
                asset="BTCUSDT" if i % 3 else "ETHUSDT",
                nav_before=navs[i], nav_after=navs[i + 1], minutes=i
            ))
        full_history = database.get_trade_history(ascending=True)
        agent = RiskAgent(config=mock_config, database=database)

        with patch.object(database, "get_trade_history", wraps=database.get_trade_history) as spy:
            snapshot = agent.process(current_nav=navs[-1])

        assert spy.call_count == 2
        assert all(c.kwargs.get("limit") for c in spy.call_args_list)
        assert snapshot == agent.calculator.calculate(full_history, navs[-1])
        assert snapshot.portfolio_drawdown == pytest.approx(7.5)

    def test_unreadable_history_withholds_snapshot(self, mock_config, database):
        agent = RiskAgent(config=mock_config, database=database)
        agent.process(current_nav=10000.0)

        with patch.object(database, "get_trade_history", side_effect=PersistenceError("locked")):
            assert agent.process(current_nav=10000.0) is None
        assert agent.latest is None
