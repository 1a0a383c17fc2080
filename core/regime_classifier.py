"""
Regime Classifier - Maps a price series to a discrete market regime.

Pure code, no I/O. The classification depends only on the input window and
the policy cutoffs; the clock is consulted only to stamp the snapshot.
"""
import logging
import math
from datetime import datetime
from typing import Optional, Sequence

import numpy as np

from config.settings import RegimePolicy
from core.clock import Clock
from models.enums import MarketRegime
from models.snapshots import RegimeSnapshot

logger = logging.getLogger(__name__)


def _margin(value: float, cutoff: float) -> float:
    """Relative distance by which ``value`` has cleared ``cutoff``."""
    return (value - cutoff) / (abs(cutoff) or 1e-9)


def _scaled_confidence(margin: float) -> float:
    """Map a non-negative margin onto the 50-100 confidence band."""
    return 50.0 + 50.0 * min(1.0, max(0.0, margin))


class RegimeClassifier:
    """
    Classifies recent market behaviour from an ordered price series.

    Rules, first match wins:
    - last return below the crash cutoff, or volatility above twice the
      high-volatility cutoff: CRASH_IMMINENT
    - negative momentum and negative trend: BEARISH
    - positive momentum, positive trend and calm volatility: BULLISH
    - volatility above the high-volatility cutoff: VOLATILE
    - otherwise NEUTRAL

    Fewer than ``policy.min_samples`` prices always yields NEUTRAL with all
    features zero.
    """

    def __init__(self, policy: Optional[RegimePolicy] = None, clock: Optional[Clock] = None):
        self.policy = policy or RegimePolicy()
        self.clock = clock or Clock()

    def classify(
        self,
        prices: Sequence[float],
        volume: Optional[Sequence[float]] = None,
        timestamp: Optional[datetime] = None
    ) -> RegimeSnapshot:
        """
        Classify the regime of a price series.

        Args:
            prices: Prices in ascending time order
            volume: Optional volumes; accepted but not used by the rules
            timestamp: Snapshot time; the injected clock is read if omitted

        Returns:
            RegimeSnapshot with regime, features and allow_trading flag
        """
        timestamp = timestamp or self.clock.now()
        series = np.asarray(
            [p for p in prices if p is not None and math.isfinite(p)],
            dtype=float
        )
        if len(series) != len(prices):
            logger.debug(f"Dropped {len(prices) - len(series)} non-finite prices before classification")

        if len(series) < self.policy.min_samples:
            return RegimeSnapshot(
                regime=MarketRegime.NEUTRAL,
                confidence=0.0,
                momentum=0.0,
                volatility=0.0,
                trend=0.0,
                sample_count=len(series),
                allow_trading=MarketRegime.NEUTRAL.allows_trading,
                timestamp=timestamp
            )

        returns = self.returns(series)
        momentum = self.momentum(returns)
        volatility = self.volatility(returns)
        trend = self.trend(series)
        last_return = float(returns[-1]) if len(returns) else 0.0

        regime, confidence = self._apply_rules(last_return, momentum, volatility, trend)

        return RegimeSnapshot(
            regime=regime,
            confidence=confidence,
            momentum=momentum,
            volatility=volatility,
            trend=trend,
            sample_count=len(series),
            allow_trading=regime.allows_trading,
            timestamp=timestamp
        )

    def _apply_rules(
        self,
        last_return: float,
        momentum: float,
        volatility: float,
        trend: float
    ) -> tuple[MarketRegime, float]:
        p = self.policy
        crash_volatility = p.high_volatility * 2

        if last_return < p.crash_return or volatility > crash_volatility:
            margin = max(
                (p.crash_return - last_return) / (abs(p.crash_return) or 1e-9),
                _margin(volatility, crash_volatility)
            )
            return MarketRegime.CRASH_IMMINENT, _scaled_confidence(margin)

        if momentum < p.bearish_momentum and trend < p.bearish_trend:
            margin = min(
                (p.bearish_momentum - momentum) / (abs(p.bearish_momentum) or 1e-9),
                (p.bearish_trend - trend) / (abs(p.bearish_trend) or 1e-9)
            )
            return MarketRegime.BEARISH, _scaled_confidence(margin)

        if (momentum > p.bullish_momentum and trend > p.bullish_trend
                and volatility < p.high_volatility):
            margin = min(
                _margin(momentum, p.bullish_momentum),
                _margin(trend, p.bullish_trend),
                (p.high_volatility - volatility) / (abs(p.high_volatility) or 1e-9)
            )
            return MarketRegime.BULLISH, _scaled_confidence(margin)

        if volatility > p.high_volatility:
            return MarketRegime.VOLATILE, _scaled_confidence(_margin(volatility, p.high_volatility))

        calm = (p.high_volatility - volatility) / (abs(p.high_volatility) or 1e-9)
        return MarketRegime.NEUTRAL, _scaled_confidence(calm)

    @staticmethod
    def returns(prices: np.ndarray) -> np.ndarray:
        """Simple returns; a zero previous price contributes a zero return."""
        if len(prices) < 2:
            return np.array([], dtype=float)
        previous = prices[:-1]
        changes = prices[1:] - previous
        return np.divide(changes, previous, out=np.zeros_like(changes), where=previous != 0)

    def momentum(self, returns: np.ndarray) -> float:
        window = self.policy.momentum_window
        if len(returns) < window:
            return 0.0
        return float(np.mean(returns[-window:]))

    @staticmethod
    def volatility(returns: np.ndarray) -> float:
        """Population standard deviation of returns."""
        if len(returns) < 2:
            return 0.0
        return float(np.std(returns, ddof=0))

    def trend(self, prices: np.ndarray) -> float:
        window = self.policy.trend_window
        if len(prices) < window * 2:
            return 0.0
        recent_avg = float(np.mean(prices[-window:]))
        older_avg = float(np.mean(prices[-2 * window:-window]))
        if older_avg == 0:
            return 0.0
        return (recent_avg - older_avg) / older_avg
