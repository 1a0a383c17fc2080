"""Configuration management for the decision engine."""
import os
import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Optional, List
from dotenv import load_dotenv

from models.enums import TradingMode
from models.market_data import Asset, AssetType
from utils.exceptions import ConfigurationError

# Load environment variables once at module level
load_dotenv()

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number, got {raw!r}",
            details={"variable": name, "value": raw}
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name, "value": raw}
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() == "true"


@dataclass(frozen=True)
class RegimePolicy:
    """Cutoffs used by the regime classifier."""
    min_samples: int = 20
    momentum_window: int = 5
    trend_window: int = 10
    crash_return: float = -0.05  # -5% single-step drop
    high_volatility: float = 0.03  # crash fires above 2x this
    bearish_momentum: float = -0.02
    bearish_trend: float = -0.01
    bullish_momentum: float = 0.02
    bullish_trend: float = 0.01

    @classmethod
    def from_env(cls) -> "RegimePolicy":
        """Load regime cutoffs from environment variables."""
        return cls(
            min_samples=_env_int("REGIME_MIN_SAMPLES", 20),
            momentum_window=_env_int("REGIME_MOMENTUM_WINDOW", 5),
            trend_window=_env_int("REGIME_TREND_WINDOW", 10),
            crash_return=_env_float("REGIME_CRASH_RETURN", -0.05),
            high_volatility=_env_float("REGIME_HIGH_VOLATILITY", 0.03),
            bearish_momentum=_env_float("REGIME_BEARISH_MOMENTUM", -0.02),
            bearish_trend=_env_float("REGIME_BEARISH_TREND", -0.01),
            bullish_momentum=_env_float("REGIME_BULLISH_MOMENTUM", 0.02),
            bullish_trend=_env_float("REGIME_BULLISH_TREND", 0.01),
        )


@dataclass(frozen=True)
class RiskPolicy:
    """Portfolio risk limits used by the risk metrics calculator.

    ``max_drawdown_threshold`` is compared against a drawdown expressed in
    percent, while the default is written as a fraction. With the default
    almost any loss pauses trading. Set RISK_MAX_DRAWDOWN_THRESHOLD to a
    percentage (e.g. 5.0) to get a 5% drawdown limit.
    """
    max_drawdown_threshold: float = 0.00001
    target_volatility: float = 0.02  # 2%
    window: int = 10

    @classmethod
    def from_env(cls) -> "RiskPolicy":
        """Load risk policy from environment variables."""
        return cls(
            max_drawdown_threshold=_env_float("RISK_MAX_DRAWDOWN_THRESHOLD", 0.00001),
            target_volatility=_env_float("RISK_TARGET_VOLATILITY", 0.02),
            window=_env_int("RISK_WINDOW", 10),
        )


_NUMERIC_SETTINGS = (
    "max_risk_per_trade",
    "confidence_threshold",
    "cooldown_period_ms",
    "decline_threshold",
    "max_correlated_positions",
)


@dataclass(frozen=True)
class TradingSettings:
    """
    Process-wide trading settings.

    Frozen: every change goes through SettingsStore.update, which swaps in a
    new instance so readers never observe a half-applied update.
    """
    mode: TradingMode = TradingMode.MANUAL
    max_risk_per_trade: float = 0.02  # 2%
    confidence_threshold: float = 70.0
    cooldown_period_ms: int = 300000  # 5 minutes
    decline_threshold: float = -0.05  # -5%
    enable_stop_loss: bool = True
    enable_take_profit: bool = True
    enable_dual_stop: bool = False
    pause_on_decline: bool = True
    max_correlated_positions: int = 3

    def __post_init__(self):
        """Validate settings values."""
        if not isinstance(self.mode, TradingMode):
            try:
                mode = TradingMode.from_string(str(self.mode))
            except ValueError as e:
                raise ConfigurationError(str(e), details={"mode": self.mode}) from e
            object.__setattr__(self, "mode", mode)
        for name in _NUMERIC_SETTINGS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"{name} must be a number, got {value!r}",
                    details={name: value}
                )
        if not 0.0 <= self.max_risk_per_trade <= 1.0:
            raise ConfigurationError(
                f"max_risk_per_trade must be between 0 and 1, got {self.max_risk_per_trade}"
            )
        if not 0.0 <= self.confidence_threshold <= 100.0:
            raise ConfigurationError(
                f"confidence_threshold must be between 0 and 100, got {self.confidence_threshold}"
            )
        if self.cooldown_period_ms < 0:
            raise ConfigurationError(
                f"cooldown_period_ms cannot be negative, got {self.cooldown_period_ms}"
            )

    def with_changes(self, **changes) -> "TradingSettings":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown trading settings: {', '.join(sorted(unknown))}"
            )
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "TradingSettings":
        """Load initial trading settings from environment variables."""
        try:
            mode = TradingMode.from_string(os.getenv("TRADING_MODE", "MANUAL"))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        return cls(
            mode=mode,
            max_risk_per_trade=_env_float("MAX_RISK_PER_TRADE", 0.02),
            confidence_threshold=_env_float("CONFIDENCE_THRESHOLD", 70.0),
            cooldown_period_ms=_env_int("COOLDOWN_PERIOD_MS", 300000),
            decline_threshold=_env_float("DECLINE_THRESHOLD", -0.05),
            enable_stop_loss=_env_bool("ENABLE_STOP_LOSS", True),
            enable_take_profit=_env_bool("ENABLE_TAKE_PROFIT", True),
            enable_dual_stop=_env_bool("ENABLE_DUAL_STOP", False),
            pause_on_decline=_env_bool("PAUSE_ON_DECLINE", True),
            max_correlated_positions=_env_int("MAX_CORRELATED_POSITIONS", 3),
        )


@dataclass
class LLMConfig:
    """AI advisor provider configuration."""
    provider: str  # "openai"
    api_key: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 200
    temperature: float = 0.7

    @classmethod
    def openai_from_env(cls) -> Optional["LLMConfig"]:
        """Load OpenAI config from environment."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        return cls(
            provider="openai",
            api_key=api_key,
            model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            base_url=os.getenv("OPENAI_BASE_URL"),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 200),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.7)
        )


@dataclass
class DatabaseConfig:
    """Database configuration."""
    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Load database config from environment."""
        url = os.getenv("DATABASE_URL")
        # Default to SQLite if no DATABASE_URL is set
        if not url:
            default_db_path = os.path.join(
                os.path.dirname(os.path.dirname(__file__)),
                "trades.db"
            )
            url = f"sqlite:///{default_db_path}"
            logger.info(f"Using default SQLite database: {url}")

        return cls(
            url=url,
            echo=_env_bool("DATABASE_ECHO", False),
            pool_size=_env_int("DATABASE_POOL_SIZE", 5),
            max_overflow=_env_int("DATABASE_MAX_OVERFLOW", 10)
        )


@dataclass
class DataProviderConfig:
    """Price provider endpoints."""
    binance_ticker_url: str = "https://api.binance.com/api/v3/ticker/24hr"
    binance_klines_url: str = "https://api.binance.com/api/v3/klines"
    kline_interval: str = "1h"
    kline_limit: int = 50
    request_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "DataProviderConfig":
        """Load price provider config from environment."""
        return cls(
            binance_ticker_url=os.getenv(
                "BINANCE_TICKER_URL", "https://api.binance.com/api/v3/ticker/24hr"
            ),
            binance_klines_url=os.getenv(
                "BINANCE_KLINES_URL", "https://api.binance.com/api/v3/klines"
            ),
            kline_interval=os.getenv("KLINE_INTERVAL", "1h"),
            kline_limit=_env_int("KLINE_LIMIT", 50),
            request_timeout_seconds=_env_float("DATA_REQUEST_TIMEOUT", 10.0)
        )


def default_assets() -> List[Asset]:
    """Assets tracked when ASSETS is not set."""
    return [
        Asset(id="btc-usdt", symbol="BTCUSDT", name="Bitcoin", type=AssetType.CRYPTO),
        Asset(id="eth-usdt", symbol="ETHUSDT", name="Ethereum", type=AssetType.CRYPTO),
        Asset(id="eur-usd", symbol="EURUSD", name="EUR/USD", type=AssetType.FOREX),
        Asset(id="aapl", symbol="AAPL", name="Apple Inc.", type=AssetType.STOCK),
    ]


def _assets_from_env() -> List[Asset]:
    """Parse ASSETS=SYMBOL:type,SYMBOL:type into Asset records."""
    raw = os.getenv("ASSETS")
    if not raw:
        return default_assets()

    assets = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        symbol, _, type_name = item.partition(":")
        try:
            asset_type = AssetType(type_name.strip().lower() or "crypto")
        except ValueError:
            raise ConfigurationError(f"Unknown asset type in ASSETS: {item!r}")
        symbol = symbol.strip().upper()
        assets.append(Asset(id=symbol.lower(), symbol=symbol, name=symbol, type=asset_type))
    return assets


@dataclass
class AppConfig:
    """Main application configuration."""
    log_level: LogLevel = LogLevel.INFO
    log_json: bool = False
    trading: TradingSettings = field(default_factory=TradingSettings)
    regime_policy: RegimePolicy = field(default_factory=RegimePolicy)
    risk_policy: RiskPolicy = field(default_factory=RiskPolicy)
    openai: Optional[LLMConfig] = None
    database: Optional[DatabaseConfig] = None
    data_provider: DataProviderConfig = field(default_factory=DataProviderConfig)
    # Orchestration settings
    assets: List[Asset] = field(default_factory=default_assets)
    price_interval_seconds: float = 5.0
    advisor_interval_seconds: float = 120.0  # 2 minutes
    # Execution settings
    starting_nav: float = 10000.0
    base_risk_fraction: float = 0.02  # 2% base risk
    manual_position_fraction: float = 0.01  # 1% for manual trades
    stop_multiplier: float = 2.0
    reward_ratio: float = 2.0
    model_version: str = "v2.3-ensemble-2025"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load all configuration from environment variables."""
        try:
            log_level = LogLevel(os.getenv("LOG_LEVEL", "INFO").upper())
        except ValueError as e:
            raise ConfigurationError(f"Invalid LOG_LEVEL: {e}") from e

        return cls(
            log_level=log_level,
            log_json=os.getenv("LOG_FORMAT", "text").lower() == "json",
            trading=TradingSettings.from_env(),
            regime_policy=RegimePolicy.from_env(),
            risk_policy=RiskPolicy.from_env(),
            openai=LLMConfig.openai_from_env(),
            database=DatabaseConfig.from_env(),
            data_provider=DataProviderConfig.from_env(),
            assets=_assets_from_env(),
            price_interval_seconds=_env_float("PRICE_INTERVAL_SECONDS", 5.0),
            advisor_interval_seconds=_env_float("ADVISOR_INTERVAL_SECONDS", 120.0),
            starting_nav=_env_float("STARTING_NAV", 10000.0),
            base_risk_fraction=_env_float("BASE_RISK_FRACTION", 0.02),
            manual_position_fraction=_env_float("MANUAL_POSITION_FRACTION", 0.01),
            stop_multiplier=_env_float("STOP_MULTIPLIER", 2.0),
            reward_ratio=_env_float("REWARD_RATIO", 2.0),
            model_version=os.getenv("MODEL_VERSION", "v2.3-ensemble-2025"),
        )


# Global config instance (lazy-loaded, CLI entry point only)
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global application configuration."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config
