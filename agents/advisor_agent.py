"""AI advisor agent producing BUY/SELL/HOLD recommendations."""
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from agents.base import BaseAgent
from core.clock import Clock
from models.enums import RecommendationAction
from models.llm_schemas import AdvisorRecommendation
from models.market_data import Asset, PriceHistory
from models.recommendation import AIRecommendation
from utils.exceptions import AdvisorError

SYSTEM_PROMPT = (
    "You are a trading assistant. You analyse recent prices and answer with a "
    "single trading recommendation. You always respond in valid JSON."
)

PROMPT_TEMPLATE = """Analyze the following price data for {name} ({symbol}) - {asset_type}:

Recent prices: {prices}

Based on this data, provide a trading recommendation in this exact JSON format:
{{
    "action": "BUY|SELL|HOLD",
    "confidence": number (0-100),
    "reasoning": "brief explanation"
}}

Consider technical analysis patterns, trends, and market conditions for {asset_type} assets.
"""


class AdvisorAgent(BaseAgent):
    """
    Asks an LLM for a recommendation on one asset.

    The advisor fails closed: without an API key, or when the call or the
    response validation fails, it returns HOLD at confidence 0, which the
    trading mode gate never executes automatically.
    """

    def __init__(self, config=None, client: Optional[Any] = None, clock: Optional[Clock] = None):
        """
        Initialize the advisor.

        Args:
            config: Application configuration
            client: Pre-built OpenAI-compatible client (tests inject a mock)
            clock: Time source for recommendation timestamps
        """
        super().__init__(config)
        self.clock = clock or Clock()
        self.llm_config = self.config.openai
        self.client = client
        self.model = self.llm_config.model if self.llm_config else "gpt-3.5-turbo"

        if self.client is None and self.llm_config:
            try:
                self.client = OpenAI(
                    api_key=self.llm_config.api_key,
                    base_url=self.llm_config.base_url
                )
                self.log_info(f"AdvisorAgent initialized with OpenAI ({self.model})")
            except OpenAIError as e:
                self.log_warning(f"Failed to initialize OpenAI client: {e}")
                self.client = None

        if self.client is None:
            self.log_warning("AI advisor not configured, recommendations will be HOLD")

    def process(self, asset: Asset, history: Optional[PriceHistory]) -> AIRecommendation:
        """
        Produce a recommendation for an asset.

        Args:
            asset: Asset to analyse
            history: Recent candles (None when the price fetch failed)

        Returns:
            AIRecommendation; HOLD with confidence 0 on any failure
        """
        self.generate_correlation_id()

        if self.client is None:
            return AIRecommendation.hold(asset.symbol, "AI advisor not configured", self.clock.now())

        if history is None or len(history) == 0:
            return AIRecommendation.hold(asset.symbol, "No price data available", self.clock.now())

        try:
            parsed = self._ask(asset, history)
        except AdvisorError as e:
            return AIRecommendation.hold(
                asset.symbol, f"Advisor unavailable: {e.message}", self.clock.now()
            )

        recommendation = AIRecommendation(
            symbol=asset.symbol,
            action=RecommendationAction(parsed.action),
            confidence=parsed.confidence,
            reasoning=parsed.reasoning,
            timestamp=self.clock.now()
        )
        self.log_info(
            f"Recommendation for {asset.symbol}: {recommendation.action.value} "
            f"({recommendation.confidence:.0f}%)",
            symbol=asset.symbol
        )
        return recommendation

    def build_prompt(self, asset: Asset, history: PriceHistory) -> str:
        """Prompt listing the last ten closes."""
        prices = ", ".join(f"{price:.2f}" for price in history.prices[-10:])
        return PROMPT_TEMPLATE.format(
            name=asset.name,
            symbol=asset.symbol,
            asset_type=asset.type.value,
            prices=prices
        )

    def _ask(self, asset: Asset, history: PriceHistory) -> AdvisorRecommendation:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_prompt(asset, history)}
                ],
                max_tokens=self.llm_config.max_tokens if self.llm_config else 200,
                temperature=self.llm_config.temperature if self.llm_config else 0.7,
                response_format={"type": "json_object"}
            )
            content = completion.choices[0].message.content
        except (OpenAIError, AttributeError, IndexError, TypeError) as e:
            raise self.handle_error(e, {"symbol": asset.symbol}, error_cls=AdvisorError)

        self.log_debug(f"LLM response for {asset.symbol}", response=content)

        try:
            return AdvisorRecommendation.model_validate_json(content or "")
        except PydanticValidationError as e:
            self.log_warning(f"Invalid advisor response for {asset.symbol}: {e}")
            raise AdvisorError(
                "Advisor response failed validation",
                correlation_id=self._correlation_id,
                details={"symbol": asset.symbol, "response": content}
            ) from e

    def health_check(self) -> Dict[str, Any]:
        health = super().health_check()
        health.update({
            "configured": self.client is not None,
            "model": self.model
        })
        return health
