"""Decision engine agents."""
from agents.base import BaseAgent
from agents.advisor_agent import AdvisorAgent
from agents.data_agent import DataAgent
from agents.execution_agent import ExecutionAgent
from agents.market_regime_agent import MarketRegimeAgent
from agents.risk_agent import RiskAgent

__all__ = [
    "BaseAgent",
    "AdvisorAgent",
    "DataAgent",
    "ExecutionAgent",
    "MarketRegimeAgent",
    "RiskAgent",
]
