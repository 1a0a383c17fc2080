"""Pydantic schemas for AI advisor response validation."""
from pydantic import BaseModel, Field, field_validator
from typing import Literal


class AdvisorRecommendation(BaseModel):
    """
    Schema for a validated AI advisor response.

    The advisor may only return one of the three actions and a confidence on
    the 0-100 scale used by the trading settings.
    """
    action: Literal["BUY", "SELL", "HOLD"] = Field(
        description="Trading action to take"
    )
    confidence: float = Field(
        ge=0.0,
        le=100.0,
        description="Confidence score between 0 and 100"
    )
    reasoning: str = Field(
        default="",
        description="Brief explanation of the recommendation"
    )

    @field_validator("action", mode="before")
    @classmethod
    def _normalise_action(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value
