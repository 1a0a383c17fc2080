"""Stop-loss and take-profit placement from an ATR-like volatility magnitude."""
from typing import Optional

from models.enums import Direction
from models.snapshots import StopLevels
from models.validation import validate_finite


class StopLevelCalculator:
    """
    Places protective levels around an entry price.

    The stop sits ``atr * multiplier`` away from entry (below for longs,
    above for shorts); the target sits ``reward_ratio`` times that risk on
    the other side.
    """

    def __init__(self, multiplier: float = 2.0, reward_ratio: float = 2.0):
        self.multiplier = multiplier
        self.reward_ratio = reward_ratio

    def stop_loss(
        self,
        entry_price: float,
        atr: float,
        direction: Direction,
        multiplier: Optional[float] = None
    ) -> float:
        entry_price = validate_finite("entry_price", entry_price)
        atr = validate_finite("atr", atr)
        multiplier = validate_finite(
            "multiplier", self.multiplier if multiplier is None else multiplier
        )

        stop_distance = atr * multiplier
        if direction == Direction.LONG:
            return entry_price - stop_distance
        return entry_price + stop_distance

    def take_profit(
        self,
        entry_price: float,
        stop_loss: float,
        direction: Direction,
        reward_ratio: Optional[float] = None
    ) -> float:
        entry_price = validate_finite("entry_price", entry_price)
        stop_loss = validate_finite("stop_loss", stop_loss)
        reward_ratio = validate_finite(
            "reward_ratio", self.reward_ratio if reward_ratio is None else reward_ratio
        )

        risk_amount = abs(entry_price - stop_loss)
        profit_target = risk_amount * reward_ratio
        if direction == Direction.LONG:
            return entry_price + profit_target
        return entry_price - profit_target

    def levels(
        self,
        entry_price: float,
        atr: float,
        direction: Direction,
        multiplier: Optional[float] = None,
        reward_ratio: Optional[float] = None
    ) -> StopLevels:
        """
        Compute stop-loss, take-profit and the risk between entry and stop.

        Raises:
            ValidationError: If any input is not finite
        """
        stop = self.stop_loss(entry_price, atr, direction, multiplier)
        target = self.take_profit(entry_price, stop, direction, reward_ratio)
        return StopLevels(
            stop_loss=stop,
            take_profit=target,
            risk_amount=abs(float(entry_price) - stop)
        )
