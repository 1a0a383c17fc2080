"""
Volatility-targeted position sizing.

The result is a fraction of NAV, never more than ``max_risk_per_trade`` and
never outside [0, 1]. Inputs are clamped rather than rejected.
"""
import logging
import math

logger = logging.getLogger(__name__)

# Floor on asset volatility so a near-zero reading cannot blow up the size
VOLATILITY_EPSILON = 0.001


def _is_finite(value) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


class PositionSizer:
    """
    Sizes positions as a bounded fraction of capital.

    fraction = base_risk * confidence/100 * target_vol / max(asset_vol, epsilon)
    clamped to [0, max_risk_per_trade] and then to [0, 1].
    """

    def __init__(self, volatility_epsilon: float = VOLATILITY_EPSILON):
        self.volatility_epsilon = volatility_epsilon

    def size(
        self,
        base_risk_fraction: float,
        confidence: float,
        target_volatility: float,
        asset_volatility: float,
        max_risk_per_trade: float
    ) -> float:
        """
        Calculate the position fraction.

        Args:
            base_risk_fraction: Fraction of NAV risked at full confidence and target volatility
            confidence: Signal confidence on a 0-100 scale
            target_volatility: Volatility the portfolio aims to run at
            asset_volatility: Observed volatility of the asset or portfolio
            max_risk_per_trade: Hard cap on the fraction

        Returns:
            Fraction of NAV in [0, min(max_risk_per_trade, 1)]
        """
        inputs = (base_risk_fraction, confidence, target_volatility, asset_volatility, max_risk_per_trade)
        if not all(_is_finite(value) for value in inputs):
            logger.warning(f"Non-finite sizing input {inputs}, sizing to zero")
            return 0.0

        base = float(base_risk_fraction)
        confidence_factor = float(confidence) / 100
        target = float(target_volatility)
        cap = max(0.0, float(max_risk_per_trade))
        volatility = max(float(asset_volatility), self.volatility_epsilon)

        volatility_factor = target / volatility
        raw = base * confidence_factor * volatility_factor

        fraction = min(max(raw, 0.0), cap)
        fraction = min(max(fraction, 0.0), 1.0)

        if fraction != raw:
            logger.debug(f"Position fraction clamped from {raw:.6f} to {fraction:.6f}")

        return fraction
