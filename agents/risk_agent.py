"""Risk agent computing the portfolio risk snapshot from recorded trades."""
from typing import Any, Dict, List, Optional

from agents.base import BaseAgent
from core.risk_metrics import RiskMetricsCalculator
from models.snapshots import RiskSnapshot
from models.trade import Trade
from utils.database import DatabaseManager
from utils.exceptions import PersistenceError


class RiskAgent(BaseAgent):
    """
    Reads trade history and produces a RiskSnapshot.

    If the trade store cannot be read the agent returns None, which blocks
    all trading until the next successful read.
    """

    def __init__(self, config=None, database: Optional[DatabaseManager] = None):
        super().__init__(config)
        self.database = database
        self.calculator = RiskMetricsCalculator(self.config.risk_policy)
        self.latest: Optional[RiskSnapshot] = None

    def process(self, current_nav: float) -> Optional[RiskSnapshot]:
        """
        Compute the risk snapshot.

        Args:
            current_nav: Current simulated NAV

        Returns:
            RiskSnapshot, or None if history could not be read
        """
        self.generate_correlation_id()
        trades = []
        if self.database is not None:
            try:
                trades = self._load_trades()
            except PersistenceError as e:
                self.log_exception("Trade history unavailable, risk snapshot withheld", e)
                self.latest = None
                return None

        snapshot = self.calculator.calculate(trades, current_nav)
        if snapshot.pause_trading and (self.latest is None or not self.latest.pause_trading):
            self.log_warning(
                f"Trading paused: drawdown {snapshot.portfolio_drawdown:.4f}% "
                f"exceeds {snapshot.max_drawdown_threshold}"
            )
        self.latest = snapshot
        return snapshot

    def _load_trades(self) -> List[Trade]:
        """
        Earliest trade followed by the trailing window, oldest first.
        """
        window = self.config.risk_policy.window
        earliest = self.database.get_trade_history(ascending=True, limit=1)
        if not earliest or window <= 0:
            return earliest

        recent = self.database.get_trade_history(limit=window)
        recent.reverse()
        if len(recent) < window:
            return recent
        return earliest + recent

    def health_check(self) -> Dict[str, Any]:
        health = super().health_check()
        if self.latest is not None:
            health.update({
                "portfolio_drawdown": self.latest.portfolio_drawdown,
                "pause_trading": self.latest.pause_trading
            })
        return health
