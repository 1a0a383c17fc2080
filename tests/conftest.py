"""Pytest configuration and shared fixtures."""
from datetime import timedelta
from typing import Callable, List

import pytest

from config.settings import AppConfig, DatabaseConfig, LogLevel, TradingSettings
from core.clock import ManualClock
from core.trading_context import TradingContext
from models.enums import (
    MarketRegime,
    RecommendationAction,
    TradeAction,
    TradeSource,
    TradingMode,
)
from models.market_data import Asset, AssetType, PriceHistory, PriceSample
from models.recommendation import AIRecommendation
from models.snapshots import RegimeSnapshot, RiskSnapshot
from models.trade import Trade
from utils.database import DatabaseManager


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Keep real credentials and overrides out of the tests."""
    for name in ("OPENAI_API_KEY", "DATABASE_URL", "TRADING_MODE", "ASSETS", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_config() -> AppConfig:
    """Configuration with an in-memory database and a single crypto asset."""
    return AppConfig(
        log_level=LogLevel.DEBUG,
        database=DatabaseConfig(url="sqlite:///:memory:"),
        assets=[Asset(id="btc-usdt", symbol="BTCUSDT", name="Bitcoin", type=AssetType.CRYPTO)],
        price_interval_seconds=0.01,
        advisor_interval_seconds=0.01
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def autopilot_context(clock) -> TradingContext:
    return TradingContext.from_settings(TradingSettings(mode=TradingMode.AUTOPILOT), clock)


@pytest.fixture
def database(mock_config) -> DatabaseManager:
    return DatabaseManager(config=mock_config)


@pytest.fixture
def make_recommendation(clock) -> Callable[..., AIRecommendation]:
    def _make(action=RecommendationAction.BUY, confidence=80.0, symbol="BTCUSDT",
              reasoning="Strong upward momentum"):
        return AIRecommendation(
            symbol=symbol,
            action=action,
            confidence=confidence,
            reasoning=reasoning,
            timestamp=clock.now()
        )
    return _make


@pytest.fixture
def make_regime(clock) -> Callable[..., RegimeSnapshot]:
    def _make(regime=MarketRegime.BULLISH, confidence=75.0):
        return RegimeSnapshot(
            regime=regime,
            confidence=confidence,
            momentum=0.03,
            volatility=0.01,
            trend=0.02,
            sample_count=50,
            allow_trading=regime.allows_trading,
            timestamp=clock.now()
        )
    return _make


@pytest.fixture
def make_risk() -> Callable[..., RiskSnapshot]:
    def _make(portfolio_drawdown=0.0, max_drawdown_threshold=0.00001, current_volatility=0.01,
              target_volatility=0.02, correlation_risk=0.0, pause_trading=None):
        if pause_trading is None:
            pause_trading = portfolio_drawdown > max_drawdown_threshold
        return RiskSnapshot(
            portfolio_drawdown=portfolio_drawdown,
            max_drawdown_threshold=max_drawdown_threshold,
            current_volatility=current_volatility,
            target_volatility=target_volatility,
            correlation_risk=correlation_risk,
            pause_trading=pause_trading
        )
    return _make


@pytest.fixture
def make_trade(clock) -> Callable[..., Trade]:
    def _make(asset="BTCUSDT", nav_before=10000.0, nav_after=9800.0, minutes=0,
              action=TradeAction.AUTO_BUY, mode=TradingMode.AUTOPILOT,
              regime=MarketRegime.BULLISH, source=TradeSource.AI, **overrides):
        fields = dict(
            asset=asset,
            action=action,
            mode=mode,
            regime=regime,
            nav_before=nav_before,
            nav_after=nav_after,
            timestamp=clock.now() + timedelta(minutes=minutes),
            quantity=0.02,
            price=50000.0,
            position_size_fraction=0.02,
            ai_recommendation=RecommendationAction.BUY,
            ai_confidence=80.0,
            ai_reason="Strong upward momentum",
            model_version="v2.3-ensemble-2025",
            source=source,
            trade_id=f"auto-{minutes}",
            notes="Automatic execution: 80% confidence",
            correlation_cluster=(asset,)
        )
        fields.update(overrides)
        return Trade(**fields)
    return _make


def geometric_prices(start: float, step: float, count: int) -> List[float]:
    """``count`` prices growing by ``step`` per sample."""
    return [start * (1 + step) ** i for i in range(count)]


@pytest.fixture
def bullish_history(clock) -> PriceHistory:
    """30 hourly candles rising 3% per step."""
    start = clock.now() - timedelta(hours=30)
    samples = [
        PriceSample(
            timestamp=start + timedelta(hours=i),
            price=price,
            high=price * 1.01,
            low=price * 0.99,
            volume=1000.0
        )
        for i, price in enumerate(geometric_prices(100.0, 0.03, 30))
    ]
    return PriceHistory(symbol="BTCUSDT", samples=samples)


@pytest.fixture
def mock_openai_client(mocker):
    """Mock OpenAI client answering with a BUY recommendation."""
    mock_client = mocker.Mock()
    mock_completion = mocker.Mock()
    mock_completion.choices = [mocker.Mock()]
    mock_completion.choices[0].message.content = (
        '{"action": "BUY", "confidence": 80, "reasoning": "Uptrend"}'
    )
    mock_client.chat.completions.create.return_value = mock_completion
    return mock_client
