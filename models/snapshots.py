"""
Immutable results produced by the decision engine core.
"""
from dataclasses import dataclass
from datetime import datetime

from models.enums import MarketRegime


@dataclass(frozen=True)
class RegimeSnapshot:
    """
    Market regime classification plus the features it was derived from.

    Attributes:
        regime: Classified regime
        confidence: How decisively the regime was reached (0-100)
        momentum: Mean of the most recent returns
        volatility: Population standard deviation of all returns
        trend: Relative change between the two most recent price windows
        sample_count: Number of prices the classification used
        allow_trading: False iff regime is BEARISH or CRASH_IMMINENT
        timestamp: When the snapshot was taken
    """
    regime: MarketRegime
    confidence: float
    momentum: float
    volatility: float
    trend: float
    sample_count: int
    allow_trading: bool
    timestamp: datetime

    def __post_init__(self):
        """Validate snapshot values."""
        if not 0.0 <= self.confidence <= 100.0:
            raise ValueError(f"confidence must be between 0 and 100, got {self.confidence}")
        if self.allow_trading != self.regime.allows_trading:
            raise ValueError(
                f"allow_trading={self.allow_trading} inconsistent with regime {self.regime.value}"
            )


@dataclass(frozen=True)
class RiskSnapshot:
    """
    Portfolio risk derived from trade history.

    Attributes:
        portfolio_drawdown: Decline from the initial NAV in percent (negative is a gain)
        max_drawdown_threshold: Drawdown above which trading pauses
        current_volatility: Std of per-trade returns over the recent window
        target_volatility: Volatility the position sizer aims for
        correlation_risk: Share of recent trades in the most traded asset (0-1)
        pause_trading: True when drawdown exceeds the threshold
    """
    portfolio_drawdown: float
    max_drawdown_threshold: float
    current_volatility: float
    target_volatility: float
    correlation_risk: float
    pause_trading: bool

    def __post_init__(self):
        """Validate snapshot values."""
        if not 0.0 <= self.correlation_risk <= 1.0:
            raise ValueError(f"correlation_risk must be between 0 and 1, got {self.correlation_risk}")


@dataclass(frozen=True)
class GateDecision:
    """Whether an action should fire automatically, and why."""
    execute: bool
    reason: str


@dataclass(frozen=True)
class TradeAllowance:
    """Whether any trade (manual or automatic) is permitted, and why."""
    allowed: bool
    reason: str


@dataclass(frozen=True)
class CooldownStatus:
    """Cooldown state of one asset."""
    in_cooldown: bool
    remaining_ms: int


@dataclass(frozen=True)
class StopLevels:
    """Protective levels for a new position."""
    stop_loss: float
    take_profit: float
    risk_amount: float
