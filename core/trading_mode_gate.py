"""
Trading mode gate - decides whether a recommendation fires automatically
and whether any trade is permitted at all.

Both checks must pass before an automatic execution:
- ``decide`` answers "should this fire without a human?"
- ``allow_any`` answers "is trading permitted right now?"
"""
import logging
from typing import Optional

from config.settings import TradingSettings
from core.trading_context import TradingContext
from models.enums import MarketRegime, RecommendationAction, TradingMode
from models.recommendation import AIRecommendation
from models.snapshots import GateDecision, RegimeSnapshot, RiskSnapshot, TradeAllowance

logger = logging.getLogger(__name__)

REASON_COOLDOWN = "cooldown"
REASON_NO_DATA = "regime data unavailable"
REASON_MANUAL = "manual confirmation required"
REASON_ASSISTED = "assisted confirmation required"
REASON_PAPER = "paper simulation"
REASON_LOW_CONFIDENCE = "confidence below threshold"
REASON_REGIME = "regime disallows trading"
REASON_HOLD = "no-op recommendation"
REASON_APPROVED = "autopilot execution approved"
REASON_UNKNOWN_MODE = "unknown trading mode"

_HALTED_REGIMES = (MarketRegime.BEARISH, MarketRegime.CRASH_IMMINENT)


class TradingModeGate:
    """
    Gate evaluated by every cycle before a trade is recorded.

    The mode comes from the context's settings store; one settings snapshot
    is read per evaluation so a concurrent mode change applies to the next
    evaluation, not halfway through this one.
    """

    def __init__(self, context: TradingContext):
        self.context = context

    def decide(
        self,
        recommendation: Optional[AIRecommendation],
        regime_snapshot: Optional[RegimeSnapshot],
        asset: str,
        settings: Optional[TradingSettings] = None
    ) -> GateDecision:
        """
        Decide whether a recommendation should execute automatically.

        Args:
            recommendation: Latest advisor recommendation (None if unavailable)
            regime_snapshot: Latest regime classification (None if unavailable)
            asset: Asset symbol
            settings: Settings snapshot to use; read from the store if omitted

        Returns:
            GateDecision(execute, reason)
        """
        settings = settings or self.context.settings.get()

        cooldown = self.context.cooldowns.status(asset)
        if cooldown.in_cooldown:
            logger.debug(f"{asset} in cooldown for another {cooldown.remaining_ms} ms")
            return GateDecision(False, REASON_COOLDOWN)

        if recommendation is None or regime_snapshot is None:
            return GateDecision(False, REASON_NO_DATA)

        mode = settings.mode
        if mode == TradingMode.MANUAL:
            return GateDecision(False, REASON_MANUAL)
        if mode == TradingMode.ASSISTED:
            return GateDecision(False, REASON_ASSISTED)
        if mode == TradingMode.PAPER:
            return GateDecision(True, REASON_PAPER)
        if mode in (TradingMode.AUTOPILOT, TradingMode.HYBRID):
            return self._evaluate_autopilot(recommendation, regime_snapshot, settings)

        return GateDecision(False, REASON_UNKNOWN_MODE)

    @staticmethod
    def _evaluate_autopilot(
        recommendation: AIRecommendation,
        regime_snapshot: RegimeSnapshot,
        settings: TradingSettings
    ) -> GateDecision:
        if recommendation.confidence < settings.confidence_threshold:
            logger.debug(
                f"Confidence {recommendation.confidence}% below threshold "
                f"{settings.confidence_threshold}%"
            )
            return GateDecision(False, REASON_LOW_CONFIDENCE)

        if not regime_snapshot.allow_trading:
            logger.debug(f"Regime {regime_snapshot.regime.value} does not allow automatic trading")
            return GateDecision(False, REASON_REGIME)

        if recommendation.action == RecommendationAction.HOLD:
            return GateDecision(False, REASON_HOLD)

        return GateDecision(True, REASON_APPROVED)

    @staticmethod
    def allow_any(
        regime_snapshot: Optional[RegimeSnapshot],
        risk_snapshot: Optional[RiskSnapshot],
        settings: Optional[TradingSettings] = None,
        override_risk: bool = False
    ) -> TradeAllowance:
        """
        Decide whether any trade, manual or automatic, is permitted.

        Missing regime or risk data always blocks; ``override_risk`` only
        lifts the drawdown and regime restrictions.

        Args:
            regime_snapshot: Latest regime classification
            risk_snapshot: Latest portfolio risk snapshot
            settings: Current trading settings
            override_risk: Explicit operator override of risk restrictions

        Returns:
            TradeAllowance(allowed, reason)
        """
        if regime_snapshot is None:
            return TradeAllowance(False, "Regime data unavailable - trading blocked")
        if risk_snapshot is None:
            return TradeAllowance(False, "Risk data unavailable - trading blocked")

        if not override_risk:
            if risk_snapshot.portfolio_drawdown > risk_snapshot.max_drawdown_threshold:
                return TradeAllowance(
                    False, "Portfolio drawdown exceeds ultra-conservative threshold"
                )

            if regime_snapshot.regime in _HALTED_REGIMES:
                return TradeAllowance(
                    False,
                    f"Market regime is {regime_snapshot.regime.value} - trading halted for safety"
                )

            if risk_snapshot.pause_trading:
                return TradeAllowance(False, "Trading paused due to risk management rules")

        return TradeAllowance(True, "All risk checks passed")
