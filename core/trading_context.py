"""
Trading context - the mutable state shared by every gate evaluation.

Owned by the orchestration layer and passed explicitly to the gate and the
agents; there is no module-level instance.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from config.settings import TradingSettings
from core.clock import Clock
from core.cooldown_registry import CooldownRegistry

logger = logging.getLogger(__name__)


class SettingsStore:
    """
    Holds the current TradingSettings.

    Updates build a new frozen instance and swap it in under a lock. Readers
    get whichever instance was current when they asked; an evaluation that
    already holds a snapshot keeps using it.
    """

    def __init__(self, settings: Optional[TradingSettings] = None):
        self._settings = settings or TradingSettings()
        self._lock = threading.Lock()

    def get(self) -> TradingSettings:
        with self._lock:
            return self._settings

    def update(self, **changes) -> TradingSettings:
        """
        Apply a partial settings update atomically.

        Raises:
            ConfigurationError: If a field is unknown or a value is invalid
        """
        with self._lock:
            previous = self._settings
            self._settings = previous.with_changes(**changes)
            current = self._settings

        if previous.mode != current.mode:
            logger.info(f"Trading mode changed: {previous.mode.value} -> {current.mode.value}")
        logger.debug(f"Trading settings updated: {changes}")
        return current


class ExecutionLockRegistry:
    """
    One lock per asset.

    Held from the automatic-execution decision until the trade is persisted
    and the cooldown is set, so overlapping cycles on one asset cannot both
    execute.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, asset: str) -> threading.Lock:
        symbol = asset.upper()
        with self._guard:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = threading.Lock()
                self._locks[symbol] = lock
            return lock

    @contextmanager
    def hold(self, asset: str, timeout: float = -1) -> Iterator[bool]:
        """
        Hold the asset lock for the duration of the block.

        Yields:
            True if the lock was acquired, False on timeout
        """
        lock = self.lock_for(asset)
        acquired = lock.acquire(timeout=timeout)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()


@dataclass
class TradingContext:
    """Settings, cooldowns, execution locks and clock for one process."""
    clock: Clock = field(default_factory=Clock)
    settings: SettingsStore = field(default_factory=SettingsStore)
    cooldowns: Optional[CooldownRegistry] = None
    execution_locks: ExecutionLockRegistry = field(default_factory=ExecutionLockRegistry)

    def __post_init__(self):
        if self.cooldowns is None:
            self.cooldowns = CooldownRegistry(
                clock=self.clock,
                default_duration_ms=lambda: self.settings.get().cooldown_period_ms
            )

    @classmethod
    def from_settings(cls, settings: TradingSettings, clock: Optional[Clock] = None) -> "TradingContext":
        return cls(clock=clock or Clock(), settings=SettingsStore(settings))
