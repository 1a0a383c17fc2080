"""Per-asset cooldown tracking after automatic execution."""
import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from core.clock import Clock
from models.snapshots import CooldownStatus

logger = logging.getLogger(__name__)


class CooldownRegistry:
    """
    Track cooldown expiry per asset to suppress repeat automatic execution.

    Every read and write takes the same lock, so a ``set`` is visible in
    full to every later ``status``. While an entry is active its expiry
    never moves backwards.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        default_duration_ms: Optional[Callable[[], int]] = None
    ):
        """
        Initialize cooldown registry.

        Args:
            clock: Time source (wall clock if omitted)
            default_duration_ms: Callable returning the current default
                cooldown, read at every ``set`` so settings changes apply
        """
        self.clock = clock or Clock()
        self._default_duration_ms = default_duration_ms or (lambda: 300000)
        self._expiries: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def set(self, asset: str, duration_ms: Optional[int] = None) -> datetime:
        """
        Start (or extend) the cooldown for an asset.

        Args:
            asset: Asset symbol
            duration_ms: Cooldown length; the settings default when omitted

        Returns:
            The expiry now in force for the asset
        """
        if duration_ms is None:
            duration_ms = self._default_duration_ms()
        duration_ms = max(0, int(duration_ms))
        symbol = asset.upper()

        with self._lock:
            now = self.clock.now()
            expiry = now + timedelta(milliseconds=duration_ms)
            current = self._expiries.get(symbol)
            if current is not None and current > now and current > expiry:
                expiry = current
            self._expiries[symbol] = expiry

        logger.info(f"Cooldown set for {symbol} until {expiry.isoformat()} ({duration_ms} ms)")
        return expiry

    def status(self, asset: str) -> CooldownStatus:
        """
        Report whether an asset is cooling down.

        Returns:
            CooldownStatus(in_cooldown, remaining_ms)
        """
        symbol = asset.upper()
        with self._lock:
            expiry = self._expiries.get(symbol)
            now = self.clock.now()

        if expiry is None or expiry <= now:
            return CooldownStatus(in_cooldown=False, remaining_ms=0)

        remaining_ms = math.ceil((expiry - now) / timedelta(milliseconds=1))
        return CooldownStatus(in_cooldown=True, remaining_ms=remaining_ms)

    def clear(self, asset: Optional[str] = None) -> None:
        """
        Clear the cooldown for an asset, or for all assets.

        Args:
            asset: Symbol to clear, or None to clear all
        """
        with self._lock:
            if asset:
                symbol = asset.upper()
                if self._expiries.pop(symbol, None) is not None:
                    logger.debug(f"Cleared cooldown for {symbol}")
            else:
                self._expiries.clear()
                logger.debug("Cleared all cooldowns")
