"""
Market Regime Agent - Classifies each asset's recent price action.

Pure code, no LLM. Wraps RegimeClassifier and keeps the latest snapshot
per asset for the execution path to read.
"""
import threading
from typing import Any, Dict, Optional

from agents.base import BaseAgent
from core.clock import Clock
from core.regime_classifier import RegimeClassifier
from models.market_data import PriceHistory
from models.snapshots import RegimeSnapshot


class MarketRegimeAgent(BaseAgent):
    """
    Turns price history into a RegimeSnapshot.

    Missing history produces no snapshot (None) so downstream gating fails
    closed; it is never treated as a NEUTRAL market.
    """

    def __init__(self, config=None, clock: Optional[Clock] = None):
        super().__init__(config)
        self.classifier = RegimeClassifier(policy=self.config.regime_policy, clock=clock)
        self._latest: Dict[str, RegimeSnapshot] = {}
        self._lock = threading.Lock()

    def process(self, history: Optional[PriceHistory]) -> Optional[RegimeSnapshot]:
        """
        Classify the regime for one asset.

        Args:
            history: Candle history (None when the fetch failed)

        Returns:
            RegimeSnapshot, or None without data
        """
        self.generate_correlation_id()
        if history is None or len(history) == 0:
            self.log_warning("No price history, regime unavailable")
            return None

        snapshot = self.classifier.classify(history.prices, history.volumes)
        with self._lock:
            previous = self._latest.get(history.symbol)
            self._latest[history.symbol] = snapshot

        if previous is None or previous.regime != snapshot.regime:
            self.log_info(
                f"{history.symbol} regime: {snapshot.regime.value} "
                f"(confidence {snapshot.confidence:.1f}, momentum {snapshot.momentum:.4f}, "
                f"volatility {snapshot.volatility:.4f}, trend {snapshot.trend:.4f})",
                symbol=history.symbol
            )
        return snapshot

    def latest(self, symbol: str) -> Optional[RegimeSnapshot]:
        """Most recent snapshot for a symbol, if any."""
        with self._lock:
            return self._latest.get(symbol)

    def health_check(self) -> Dict[str, Any]:
        health = super().health_check()
        with self._lock:
            health["regimes"] = {s: snap.regime.value for s, snap in self._latest.items()}
        return health
