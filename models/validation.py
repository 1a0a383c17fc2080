"""Validation utilities for engine inputs."""
import math
import re
from utils.exceptions import ValidationError
from models.enums import RecommendationAction


def validate_symbol(symbol: str) -> str:
    """
    Validate and normalize an asset symbol.

    Args:
        symbol: Asset symbol to validate (e.g. "BTCUSDT", "AAPL")

    Returns:
        Normalized symbol (uppercase, stripped)

    Raises:
        ValidationError: If symbol is invalid
    """
    if not symbol:
        raise ValidationError("Symbol cannot be empty")

    symbol = symbol.strip().upper()

    # Crypto pairs and forex pairs run longer than equity tickers
    if not re.match(r'^[A-Z0-9]{1,12}$', symbol):
        raise ValidationError(
            f"Invalid symbol format: {symbol}. "
            "Symbols must be 1-12 letters or digits"
        )

    return symbol


def validate_finite(name: str, value: float) -> float:
    """
    Validate that a value is a finite number.

    Raises:
        ValidationError: If value is NaN, infinite or not numeric
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")

    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value}")

    return value


def validate_price(price: float, allow_zero: bool = False) -> float:
    """
    Validate price value.

    Args:
        price: Price to validate
        allow_zero: Whether to allow zero prices

    Returns:
        Validated price

    Raises:
        ValidationError: If price is invalid
    """
    price = validate_finite("Price", price)

    if not allow_zero and price <= 0:
        raise ValidationError(f"Price must be positive, got {price}")

    if allow_zero and price < 0:
        raise ValidationError(f"Price cannot be negative, got {price}")

    return price


def validate_action(action: str) -> RecommendationAction:
    """
    Validate and convert a recommendation action.

    Raises:
        ValidationError: If action is invalid
    """
    if isinstance(action, RecommendationAction):
        return action
    try:
        return RecommendationAction.from_string(str(action))
    except ValueError as e:
        raise ValidationError(str(e))
