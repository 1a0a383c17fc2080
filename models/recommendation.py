"""AI advisor recommendation model."""
from dataclasses import dataclass
from datetime import datetime

from models.enums import RecommendationAction


@dataclass(frozen=True)
class AIRecommendation:
    """
    Recommendation produced by the AI advisor for one asset.

    Attributes:
        symbol: Asset symbol the recommendation applies to
        action: BUY, SELL or HOLD
        confidence: Advisor confidence on a 0-100 scale
        reasoning: Free-text explanation from the advisor
        timestamp: When the recommendation was produced
    """
    symbol: str
    action: RecommendationAction
    confidence: float
    reasoning: str
    timestamp: datetime

    @classmethod
    def hold(cls, symbol: str, reasoning: str, timestamp: datetime) -> "AIRecommendation":
        """A zero-confidence HOLD, used whenever the advisor cannot answer."""
        return cls(
            symbol=symbol,
            action=RecommendationAction.HOLD,
            confidence=0.0,
            reasoning=reasoning,
            timestamp=timestamp
        )
