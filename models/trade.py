"""Trade record and history query models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models.enums import (
    MarketRegime,
    RecommendationAction,
    TradeAction,
    TradeSource,
    TradingMode,
)


@dataclass(frozen=True)
class Trade:
    """
    A recorded trade intent. Immutable once recorded.

    ``nav_before``/``nav_after`` are the simulated portfolio values around
    the trade; their difference is the trade's P&L.
    """
    asset: str
    action: TradeAction
    mode: TradingMode
    regime: MarketRegime
    nav_before: float
    nav_after: float
    timestamp: datetime
    quantity: float
    price: float
    position_size_fraction: float
    ai_recommendation: RecommendationAction
    ai_confidence: float
    ai_reason: str
    model_version: str
    source: TradeSource
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    trade_id: Optional[str] = None
    notes: Optional[str] = None
    correlation_cluster: Tuple[str, ...] = field(default_factory=tuple)
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def pnl(self) -> float:
        """Change in NAV caused by this trade."""
        return self.nav_after - self.nav_before

    @property
    def confidence(self) -> float:
        """Advisor confidence attached to the trade."""
        return self.ai_confidence


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execution attempt; ``trade`` is set only when recorded."""
    executed: bool
    reason: str
    trade: Optional[Trade] = None


@dataclass(frozen=True)
class TradeHistoryFilters:
    """Optional filters for trade history queries."""
    asset: Optional[str] = None
    action: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None
    mode: Optional[TradingMode] = None
    regime: Optional[MarketRegime] = None
    source: Optional[TradeSource] = None


@dataclass
class DailySummary:
    """Aggregates over one day of trades."""
    total_trades: int = 0
    profitable_trades: int = 0
    total_pnl: float = 0.0
    best_trade: Optional[Trade] = None
    worst_trade: Optional[Trade] = None
    mode_breakdown: Dict[str, int] = field(default_factory=dict)
    regime_breakdown: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_trades(cls, trades: List[Trade]) -> "DailySummary":
        """Build a summary from a list of trades."""
        if not trades:
            return cls()

        by_pnl = sorted(trades, key=lambda t: t.pnl, reverse=True)
        mode_breakdown: Dict[str, int] = {}
        regime_breakdown: Dict[str, int] = {}
        for trade in trades:
            mode_breakdown[trade.mode.value] = mode_breakdown.get(trade.mode.value, 0) + 1
            regime_breakdown[trade.regime.value] = regime_breakdown.get(trade.regime.value, 0) + 1

        return cls(
            total_trades=len(trades),
            profitable_trades=sum(1 for t in trades if t.nav_after > t.nav_before),
            total_pnl=sum(t.pnl for t in trades),
            best_trade=by_pnl[0],
            worst_trade=by_pnl[-1],
            mode_breakdown=mode_breakdown,
            regime_breakdown=regime_breakdown
        )
