"""Portfolio risk snapshot derived from trade history."""
import logging
from collections import Counter
from typing import Optional, Sequence

import numpy as np

from config.settings import RiskPolicy
from models.snapshots import RiskSnapshot
from models.trade import Trade

logger = logging.getLogger(__name__)


class RiskMetricsCalculator:
    """
    Computes drawdown, trade-return volatility and concentration risk.

    Drawdown is measured in percent from the NAV before the earliest trade.
    Volatility and concentration only look at the trailing ``policy.window``
    trades.
    """

    def __init__(self, policy: Optional[RiskPolicy] = None):
        self.policy = policy or RiskPolicy()

    def calculate(self, trades: Sequence[Trade], current_nav: float) -> RiskSnapshot:
        """
        Build a risk snapshot.

        Args:
            trades: Trade history ordered ascending by time
            current_nav: Current net asset value

        Returns:
            RiskSnapshot
        """
        initial_nav = trades[0].nav_before if trades else current_nav
        drawdown = self.portfolio_drawdown(initial_nav, current_nav)

        recent = list(trades[-self.policy.window:]) if self.policy.window > 0 else []
        volatility = self.trade_volatility(recent)
        correlation_risk = self.correlation_risk(recent)

        pause = drawdown > self.policy.max_drawdown_threshold
        if pause:
            logger.debug(
                f"Drawdown {drawdown:.6f}% exceeds threshold {self.policy.max_drawdown_threshold}"
            )

        return RiskSnapshot(
            portfolio_drawdown=drawdown,
            max_drawdown_threshold=self.policy.max_drawdown_threshold,
            current_volatility=volatility,
            target_volatility=self.policy.target_volatility,
            correlation_risk=correlation_risk,
            pause_trading=pause
        )

    @staticmethod
    def portfolio_drawdown(initial_nav: float, current_nav: float) -> float:
        """Percentage decline from ``initial_nav``; negative means a gain."""
        if initial_nav <= 0:
            return 0.0
        return ((initial_nav - current_nav) / initial_nav) * 100

    @staticmethod
    def trade_volatility(trades: Sequence[Trade]) -> float:
        """Population std of per-trade NAV returns, 0 for fewer than two trades."""
        if len(trades) < 2:
            return 0.0
        returns = np.array([
            (t.nav_after - t.nav_before) / t.nav_before if t.nav_before else 0.0
            for t in trades
        ], dtype=float)
        return float(np.std(returns, ddof=0))

    @staticmethod
    def correlation_risk(trades: Sequence[Trade]) -> float:
        """Share of trades placed in the single most traded asset."""
        if not trades:
            return 0.0
        counts = Counter(t.asset for t in trades)
        return max(counts.values()) / len(trades)
