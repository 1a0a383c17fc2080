"""Enums for decision engine models."""
from enum import Enum


class TradingMode(str, Enum):
    """How much authority the engine has to act on a recommendation."""
    MANUAL = "MANUAL"
    ASSISTED = "ASSISTED"
    AUTOPILOT = "AUTOPILOT"
    HYBRID = "HYBRID"
    PAPER = "PAPER"

    @classmethod
    def from_string(cls, value: str) -> "TradingMode":
        """Convert string to TradingMode."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Invalid trading mode: {value}. "
                f"Must be one of {', '.join(m.value for m in cls)}"
            )

    @property
    def description(self) -> str:
        """Short human-readable description of the mode."""
        return _MODE_DESCRIPTIONS[self]


_MODE_DESCRIPTIONS = {
    TradingMode.MANUAL: "Manual - You control all trades",
    TradingMode.ASSISTED: "Assisted - AI suggests, you confirm",
    TradingMode.AUTOPILOT: "Autopilot - AI executes automatically",
    TradingMode.HYBRID: "Hybrid - Auto with risk controls",
    TradingMode.PAPER: "Paper - Simulate trades only",
}


class MarketRegime(str, Enum):
    """Discrete classification of recent market behaviour."""
    BULLISH = "BULLISH"
    NEUTRAL = "NEUTRAL"
    VOLATILE = "VOLATILE"
    BEARISH = "BEARISH"
    CRASH_IMMINENT = "CRASH_IMMINENT"

    @property
    def allows_trading(self) -> bool:
        """False for regimes in which trading is halted."""
        return self not in (MarketRegime.BEARISH, MarketRegime.CRASH_IMMINENT)


class RecommendationAction(str, Enum):
    """Action suggested by the AI advisor."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @classmethod
    def from_string(cls, value: str) -> "RecommendationAction":
        """Convert string to RecommendationAction."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid action: {value}. Must be 'BUY', 'SELL' or 'HOLD'")


class TradeAction(str, Enum):
    """Action recorded on a persisted trade."""
    AUTO_BUY = "AUTO_BUY"
    AUTO_SELL = "AUTO_SELL"
    MANUAL_BUY = "MANUAL_BUY"
    MANUAL_SELL = "MANUAL_SELL"
    HOLD = "HOLD"

    @classmethod
    def for_recommendation(cls, action: RecommendationAction, automatic: bool) -> "TradeAction":
        """Map an advisor action to the recorded trade action."""
        if action == RecommendationAction.HOLD:
            return cls.HOLD
        prefix = "AUTO" if automatic else "MANUAL"
        return cls(f"{prefix}_{action.value}")


class TradeSource(str, Enum):
    """Who originated a trade."""
    AI = "AI"
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class Direction(str, Enum):
    """Position direction for stop placement."""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def for_action(cls, action: RecommendationAction) -> "Direction":
        """BUY opens a long, anything else is treated as short."""
        return cls.LONG if action == RecommendationAction.BUY else cls.SHORT
