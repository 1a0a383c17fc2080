"""Execution agent recording gated, sized trade intents."""
import threading
from typing import Any, Dict, Optional

from agents.base import BaseAgent
from core.indicators import estimate_atr
from core.position_sizer import PositionSizer
from core.stop_levels import StopLevelCalculator
from core.trading_context import TradingContext
from core.trading_mode_gate import REASON_HOLD, TradingModeGate
from config.settings import TradingSettings
from models.enums import Direction, RecommendationAction, TradeAction, TradeSource
from models.market_data import PriceHistory
from models.recommendation import AIRecommendation
from models.snapshots import RegimeSnapshot, RiskSnapshot, StopLevels
from models.trade import ExecutionResult, Trade
from models.validation import validate_action, validate_price, validate_symbol
from utils.database import DatabaseManager
from utils.exceptions import PersistenceError, ValidationError

REASON_NO_PRICE = "price unavailable"
REASON_ZERO_SIZE = "position size is zero"
REASON_PERSIST_FAILED = "trade could not be recorded"


class ExecutionAgent(BaseAgent):
    """
    Turns approved recommendations into recorded trades.

    Nothing is sent to a broker: a trade is the persisted intent plus the
    simulated NAV change. For one asset, the gate decision, persistence and
    cooldown happen under that asset's execution lock, so two overlapping
    cycles cannot both trade it.
    """

    def __init__(
        self,
        config=None,
        context: Optional[TradingContext] = None,
        database: Optional[DatabaseManager] = None,
        sizer: Optional[PositionSizer] = None,
        stops: Optional[StopLevelCalculator] = None
    ):
        """
        Initialize the execution agent.

        Args:
            config: Application configuration
            context: Shared trading context (settings, cooldowns, locks, clock)
            database: Trade store; an in-memory store is created if omitted
            sizer: Position sizer
            stops: Stop level calculator
        """
        super().__init__(config)
        self.context = context or TradingContext.from_settings(self.config.trading)
        self.database = database or DatabaseManager(None)
        self.gate = TradingModeGate(self.context)
        self.sizer = sizer or PositionSizer()
        self.stops = stops or StopLevelCalculator(
            multiplier=self.config.stop_multiplier,
            reward_ratio=self.config.reward_ratio
        )
        self._nav_lock = threading.Lock()
        self._nav = self._restore_nav()
        self.log_info(f"ExecutionAgent initialized (NAV {self._nav:.2f})")

    @property
    def nav(self) -> float:
        """Current simulated net asset value."""
        with self._nav_lock:
            return self._nav

    def _restore_nav(self) -> float:
        try:
            latest = self.database.get_trade_history(limit=1)
        except PersistenceError as e:
            self.log_warning(f"Could not read last NAV, starting from configured NAV: {e}")
            return self.config.starting_nav
        if latest:
            return latest[0].nav_after
        return self.config.starting_nav

    def process(
        self,
        asset: str,
        recommendation: Optional[AIRecommendation],
        regime: Optional[RegimeSnapshot],
        risk: Optional[RiskSnapshot],
        price: Optional[float],
        history: Optional[PriceHistory] = None
    ) -> ExecutionResult:
        """
        Evaluate and, if approved, record an automatic trade.

        Args:
            asset: Asset symbol
            recommendation: Latest advisor recommendation
            regime: Latest regime snapshot
            risk: Latest risk snapshot
            price: Latest price
            history: Candles used to estimate ATR for stop placement

        Returns:
            ExecutionResult with the gate reason, or the recorded trade
        """
        self.generate_correlation_id()
        symbol = validate_symbol(asset)
        settings = self.context.settings.get()

        with self.context.execution_locks.hold(symbol):
            decision = self.gate.decide(recommendation, regime, symbol, settings)
            if not decision.execute:
                self.log_debug(f"{symbol}: not executing ({decision.reason})")
                return ExecutionResult(False, decision.reason)

            allowance = self.gate.allow_any(regime, risk, settings)
            if not allowance.allowed:
                self.log_info(f"{symbol}: blocked by risk checks ({allowance.reason})")
                return ExecutionResult(False, allowance.reason)

            if recommendation.action == RecommendationAction.HOLD:
                return ExecutionResult(False, REASON_HOLD)

            entry = self._entry_price(price)
            if entry is None:
                return ExecutionResult(False, REASON_NO_PRICE)

            fraction = self.sizer.size(
                self.config.base_risk_fraction,
                recommendation.confidence,
                risk.target_volatility,
                risk.current_volatility,
                settings.max_risk_per_trade
            )
            if fraction <= 0:
                return ExecutionResult(False, REASON_ZERO_SIZE)

            levels = self._stop_levels(entry, recommendation.action, history, settings)
            now = self.context.clock.now()

            with self._nav_lock:
                nav_before = self._nav
                trade = Trade(
                    asset=symbol,
                    action=TradeAction.for_recommendation(recommendation.action, automatic=True),
                    mode=settings.mode,
                    regime=regime.regime,
                    nav_before=nav_before,
                    nav_after=self._nav_after(nav_before, fraction, recommendation.action),
                    timestamp=now,
                    quantity=fraction,
                    price=entry,
                    position_size_fraction=fraction,
                    ai_recommendation=recommendation.action,
                    ai_confidence=recommendation.confidence,
                    ai_reason=recommendation.reasoning,
                    model_version=self.config.model_version,
                    source=TradeSource.AI,
                    stop_loss=levels.stop_loss if levels and settings.enable_stop_loss else None,
                    take_profit=levels.take_profit if levels and settings.enable_take_profit else None,
                    trade_id=f"auto-{self.context.clock.now_ms()}",
                    notes=f"Automatic execution: {recommendation.confidence:g}% confidence",
                    correlation_cluster=(symbol,)
                )
                saved = self._record(trade)
                if saved is None:
                    return ExecutionResult(False, REASON_PERSIST_FAILED)
                self._nav = saved.nav_after

            self.context.cooldowns.set(symbol)

        self.log_info(
            f"Auto-executed {saved.action.value} {symbol} at {entry} "
            f"({fraction:.4%} of NAV, mode {settings.mode.value})",
            symbol=symbol,
            trade_id=saved.trade_id
        )
        return ExecutionResult(True, decision.reason, saved)

    def execute_manual(
        self,
        asset: str,
        action: RecommendationAction,
        recommendation: Optional[AIRecommendation],
        regime: Optional[RegimeSnapshot],
        risk: Optional[RiskSnapshot],
        price: Optional[float],
        override_risk: bool = False
    ) -> ExecutionResult:
        """
        Record an operator-confirmed trade at the fixed manual fraction.

        Manual trades skip the automatic gate and do not start a cooldown,
        but still need ``allow_any`` (which ``override_risk`` can relax).

        Args:
            asset: Asset symbol
            action: BUY or SELL chosen by the operator
            recommendation: Advisor recommendation shown when confirming
            regime: Latest regime snapshot
            risk: Latest risk snapshot
            price: Latest price
            override_risk: Operator override of drawdown and regime restrictions

        Returns:
            ExecutionResult
        """
        self.generate_correlation_id()
        symbol = validate_symbol(asset)
        action = validate_action(action)
        settings = self.context.settings.get()

        if recommendation is None:
            return ExecutionResult(False, "No recommendation to confirm")
        if action == RecommendationAction.HOLD:
            return ExecutionResult(False, REASON_HOLD)

        with self.context.execution_locks.hold(symbol):
            allowance = self.gate.allow_any(regime, risk, settings, override_risk=override_risk)
            if not allowance.allowed:
                self.log_info(f"{symbol}: manual trade blocked ({allowance.reason})")
                return ExecutionResult(False, allowance.reason)

            entry = self._entry_price(price)
            if entry is None:
                return ExecutionResult(False, REASON_NO_PRICE)

            fraction = self.config.manual_position_fraction
            with self._nav_lock:
                nav_before = self._nav
                trade = Trade(
                    asset=symbol,
                    action=TradeAction.for_recommendation(action, automatic=False),
                    mode=settings.mode,
                    regime=regime.regime,
                    nav_before=nav_before,
                    nav_after=self._nav_after(nav_before, fraction, action),
                    timestamp=self.context.clock.now(),
                    quantity=fraction,
                    price=entry,
                    position_size_fraction=fraction,
                    ai_recommendation=recommendation.action,
                    ai_confidence=recommendation.confidence,
                    ai_reason=recommendation.reasoning,
                    model_version=self.config.model_version,
                    source=TradeSource.MANUAL,
                    trade_id=f"manual-{self.context.clock.now_ms()}",
                    notes="Manual execution by user",
                    correlation_cluster=(symbol,)
                )
                saved = self._record(trade)
                if saved is None:
                    return ExecutionResult(False, REASON_PERSIST_FAILED)
                self._nav = saved.nav_after

        if override_risk:
            self.log_warning(f"Manual {action.value} {symbol} recorded with risk override")
        self.log_info(f"Manual {saved.action.value} {symbol} at {entry}", trade_id=saved.trade_id)
        return ExecutionResult(True, allowance.reason, saved)

    @staticmethod
    def _nav_after(nav_before: float, fraction: float, action: RecommendationAction) -> float:
        amount = nav_before * fraction
        if action == RecommendationAction.BUY:
            return nav_before - amount
        return nav_before + amount

    def _entry_price(self, price: Optional[float]) -> Optional[float]:
        if price is None:
            return None
        try:
            return validate_price(price)
        except ValidationError as e:
            self.log_warning(f"Rejected entry price: {e.message}")
            return None

    def _stop_levels(
        self,
        entry: float,
        action: RecommendationAction,
        history: Optional[PriceHistory],
        settings: TradingSettings
    ) -> Optional[StopLevels]:
        if not (settings.enable_stop_loss or settings.enable_take_profit) or history is None:
            return None
        atr = estimate_atr(history.to_dataframe())
        if atr is None:
            return None
        try:
            return self.stops.levels(entry, atr, Direction.for_action(action))
        except ValidationError as e:
            self.log_warning(f"Stop levels skipped: {e.message}")
            return None

    def _record(self, trade: Trade) -> Optional[Trade]:
        try:
            return self.database.save_trade(trade)
        except PersistenceError as e:
            self.log_exception(f"Failed to record trade for {trade.asset}", e, asset=trade.asset)
            return None

    def health_check(self) -> Dict[str, Any]:
        health = super().health_check()
        database_health = self.database.health_check()
        health.update({
            "nav": self.nav,
            "database": database_health.get("status")
        })
        if database_health.get("status") != "healthy":
            health["status"] = "unhealthy"
            health["error"] = database_health.get("error")
        return health
