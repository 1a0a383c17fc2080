"""Async orchestration of the price refresh and advisor cycles."""
import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from agents.advisor_agent import AdvisorAgent
from agents.data_agent import DataAgent
from agents.execution_agent import ExecutionAgent
from agents.market_regime_agent import MarketRegimeAgent
from agents.risk_agent import RiskAgent
from config.settings import AppConfig, TradingSettings
from core.trading_context import TradingContext
from models.enums import RecommendationAction
from models.market_data import Asset, PriceData, PriceHistory
from models.recommendation import AIRecommendation
from models.snapshots import RegimeSnapshot, RiskSnapshot
from models.trade import ExecutionResult
from utils.database import DatabaseManager
from utils.exceptions import TradingSystemError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class AssetState:
    """Latest observations for one tracked asset."""
    asset: Asset
    price: Optional[PriceData] = None
    history: Optional[PriceHistory] = None
    regime: Optional[RegimeSnapshot] = None
    recommendation: Optional[AIRecommendation] = None
    risk: Optional[RiskSnapshot] = None
    last_result: Optional[ExecutionResult] = None

    @property
    def last_price(self) -> Optional[float]:
        if self.price is not None:
            return self.price.price
        if self.history is not None and len(self.history):
            return self.history.prices[-1]
        return None


class DecisionEngineOrchestrator:
    """
    Runs two periodic cycles per tracked asset.

    - price cycle (``price_interval_seconds``): refresh the latest ticker
    - advisor cycle (``advisor_interval_seconds``): fetch candles, classify
      the regime, ask the advisor, compute risk, then hand everything to the
      execution agent

    Blocking agent calls run in the default executor; the execution agent's
    per-asset lock keeps overlapping cycles from trading one asset twice.
    """

    def __init__(
        self,
        config: AppConfig,
        context: Optional[TradingContext] = None,
        database: Optional[DatabaseManager] = None,
        data_agent: Optional[DataAgent] = None,
        advisor_agent: Optional[AdvisorAgent] = None,
        regime_agent: Optional[MarketRegimeAgent] = None,
        risk_agent: Optional[RiskAgent] = None,
        execution_agent: Optional[ExecutionAgent] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Application configuration
            context: Trading context; built from ``config.trading`` if omitted
            database: Trade store; built from ``config`` if omitted
            data_agent, advisor_agent, regime_agent, risk_agent, execution_agent:
                Pre-built agents (tests inject fakes)
        """
        self.config = config
        self.context = context or TradingContext.from_settings(config.trading)
        self.running = False
        self._tasks: List[asyncio.Task] = []

        logger.info("Initializing agents...")
        try:
            self.database = database or DatabaseManager(config)
            self.data_agent = data_agent or DataAgent(config=config)
            self.advisor_agent = advisor_agent or AdvisorAgent(config=config, clock=self.context.clock)
            self.regime_agent = regime_agent or MarketRegimeAgent(config=config, clock=self.context.clock)
            self.risk_agent = risk_agent or RiskAgent(config=config, database=self.database)
            self.execution_agent = execution_agent or ExecutionAgent(
                config=config, context=self.context, database=self.database
            )
        except Exception as e:
            logger.exception("Failed to initialize agents")
            raise TradingSystemError(f"Failed to initialize orchestrator: {e}") from e

        self.states: Dict[str, AssetState] = {
            asset.symbol: AssetState(asset=asset) for asset in config.assets
        }

    async def _async_process(self, func, *args, **kwargs):
        """Await coroutine functions; run blocking ones in the default executor."""
        if inspect.iscoroutinefunction(func):
            return await func(*args, **kwargs)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    def _state(self, symbol: str) -> AssetState:
        state = self.states.get(symbol.upper())
        if state is None:
            raise ValidationError(f"Asset {symbol} is not tracked")
        return state

    async def refresh_price(self, symbol: str) -> Optional[PriceData]:
        """Price cycle body for one asset."""
        state = self._state(symbol)
        price = await self.data_agent.fetch_price(state.asset)
        if price is not None:
            state.price = price
        return price

    async def run_advisor_cycle(self, symbol: str) -> ExecutionResult:
        """
        Advisor cycle body for one asset.

        A failed candle fetch leaves the asset without a regime snapshot for
        this cycle, so the gate blocks execution.
        """
        state = self._state(symbol)
        asset = state.asset

        history = await self.data_agent.fetch_history(asset)
        state.history = history
        state.regime = await self._async_process(self.regime_agent.process, history)
        state.recommendation = await self._async_process(self.advisor_agent.process, asset, history)
        state.risk = await self._async_process(self.risk_agent.process, self.execution_agent.nav)

        result = await self._async_process(
            self.execution_agent.process,
            asset.symbol,
            state.recommendation,
            state.regime,
            state.risk,
            state.last_price,
            history
        )
        state.last_result = result
        if result.executed:
            logger.info(f"{asset.symbol}: trade recorded ({result.trade.action.value})")
        else:
            logger.debug(f"{asset.symbol}: no trade ({result.reason})")
        return result

    async def run_once(self) -> Dict[str, ExecutionResult]:
        """One price refresh and one advisor cycle for every tracked asset."""
        results = {}
        for symbol in self.states:
            await self.refresh_price(symbol)
            results[symbol] = await self.run_advisor_cycle(symbol)
        return results

    async def execute_manual(
        self,
        symbol: str,
        action: RecommendationAction,
        override_risk: bool = False
    ) -> ExecutionResult:
        """Confirm a manual trade against the asset's latest observations."""
        state = self._state(symbol)
        return await self._async_process(
            self.execution_agent.execute_manual,
            state.asset.symbol,
            action,
            state.recommendation,
            state.regime,
            state.risk,
            state.last_price,
            override_risk=override_risk
        )

    def update_settings(self, **changes: Any) -> TradingSettings:
        """Apply a trading settings change; the next evaluation sees it."""
        return self.context.settings.update(**changes)

    async def _periodic(self, name: str, interval: float, func, symbol: str) -> None:
        while self.running:
            try:
                await func(symbol)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Error in {name} cycle for {symbol}")
            await asyncio.sleep(interval)

    async def start(self) -> None:
        """Start both cycles for every asset and run until stopped."""
        settings = self.context.settings.get()
        logger.info("=" * 60)
        logger.info("Decision Engine Starting")
        logger.info(f"Mode: {settings.mode.value} ({settings.mode.description})")
        logger.info(f"Assets: {', '.join(self.states)}")
        logger.info(
            f"Intervals: price {self.config.price_interval_seconds}s, "
            f"advisor {self.config.advisor_interval_seconds}s"
        )
        logger.info("=" * 60)

        if not self.health_check_all():
            raise TradingSystemError("Health checks failed")

        self.running = True
        for symbol in self.states:
            self._tasks.append(asyncio.create_task(
                self._periodic("price", self.config.price_interval_seconds, self.refresh_price, symbol)
            ))
            self._tasks.append(asyncio.create_task(
                self._periodic("advisor", self.config.advisor_interval_seconds, self.run_advisor_cycle, symbol)
            ))

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Orchestrator tasks cancelled")

    async def stop(self) -> None:
        """Cancel the cycles and release HTTP resources."""
        logger.info("Stopping orchestrator...")
        self.running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.data_agent.cleanup_async_resources()
        logger.info("Orchestrator stopped")

    def health_check_all(self) -> bool:
        """Run every agent's health check and log the result."""
        checks = {
            "DataAgent": self.data_agent.health_check(),
            "AdvisorAgent": self.advisor_agent.health_check(),
            "MarketRegimeAgent": self.regime_agent.health_check(),
            "RiskAgent": self.risk_agent.health_check(),
            "ExecutionAgent": self.execution_agent.health_check(),
        }

        all_healthy = True
        for agent_name, health in checks.items():
            status = health.get("status", "unknown")
            if status == "healthy":
                logger.info(f"{agent_name}: {status}")
            else:
                logger.error(f"{agent_name}: {status} - {health.get('error', 'Unknown error')}")
                all_healthy = False
        return all_healthy
