"""Custom exceptions for the decision engine."""
from typing import Optional


class TradingSystemError(Exception):
    """Base exception for all decision engine errors."""

    def __init__(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.correlation_id = correlation_id
        self.details = details or {}


class AgentError(TradingSystemError):
    """Base exception for agent-related errors."""
    pass


class ConfigurationError(TradingSystemError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(TradingSystemError):
    """Raised when input validation fails."""
    pass


class PersistenceError(TradingSystemError):
    """Raised when the trade store cannot record or read trades."""
    pass


class APIError(TradingSystemError):
    """Raised when external API calls fail."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        correlation_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, correlation_id, details)
        self.status_code = status_code


class AdvisorError(AgentError):
    """Raised when the AI advisor returns an unusable recommendation."""
    pass
