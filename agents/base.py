"""Base agent class shared by the decision engine agents."""
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from config.settings import AppConfig
from utils.exceptions import AgentError


class BaseAgent(ABC):
    """
    Base class for the engine's agents.

    Agents take their configuration explicitly. Each call that does work
    starts a new correlation id so its log lines can be grouped.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Initialize the base agent.

        Args:
            config: Application configuration. Defaults are used if None.
        """
        self.config = config or AppConfig()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._correlation_id: Optional[str] = None

    @property
    def correlation_id(self) -> Optional[str]:
        """Correlation id of the call in progress."""
        return self._correlation_id

    @correlation_id.setter
    def correlation_id(self, value: Optional[str]) -> None:
        self._correlation_id = value

    def generate_correlation_id(self) -> str:
        """Start a new correlation id and return it."""
        self._correlation_id = str(uuid.uuid4())
        return self._correlation_id

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        extra = {"correlation_id": self._correlation_id}
        extra.update(kwargs)
        self.logger.log(level, message, extra=extra)

    def log_debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def log_info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def log_warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def log_error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def log_exception(self, message: str, exc: Exception, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        extra = {"correlation_id": self._correlation_id}
        extra.update(kwargs)
        self.logger.error(message, extra=extra, exc_info=exc)

    def handle_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        error_cls: Type[AgentError] = AgentError
    ) -> AgentError:
        """
        Log an exception and wrap it in an agent error.

        Args:
            error: The original exception
            context: Extra details to attach and log
            error_cls: AgentError subclass to build

        Returns:
            The wrapped error (the caller decides whether to raise it)
        """
        context = context or {}
        self.log_exception(f"Error in {self.__class__.__name__}: {error}", error, **context)
        return error_cls(
            message=str(error),
            correlation_id=self._correlation_id,
            details=context
        )

    @abstractmethod
    def process(self, *args: Any, **kwargs: Any) -> Any:
        """Primary entry point of the agent."""

    def health_check(self) -> Dict[str, Any]:
        """
        Report agent health.

        Returns:
            Dictionary with at least ``agent`` and ``status`` keys
        """
        return {
            "agent": self.__class__.__name__,
            "status": "healthy",
            "correlation_id": self._correlation_id
        }
