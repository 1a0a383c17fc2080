"""Market data models."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, List
import pandas as pd


class AssetType(str, Enum):
    """Asset class, used to pick a price provider."""
    CRYPTO = "crypto"
    FOREX = "forex"
    STOCK = "stock"


@dataclass(frozen=True)
class Asset:
    """A tradeable instrument."""
    id: str
    symbol: str
    name: str
    type: AssetType


@dataclass(frozen=True)
class PriceSample:
    """One point of a price history (a closed candle when high/low are set)."""
    timestamp: datetime
    price: float
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class PriceData:
    """Latest ticker for an asset."""
    symbol: str
    price: float
    change_24h: float
    change_percent_24h: float
    timestamp: datetime


@dataclass
class PriceHistory:
    """Container for an asset's ordered price samples."""
    symbol: str
    samples: Optional[List[PriceSample]] = None
    dataframe: Optional[pd.DataFrame] = None  # Pandas DataFrame for analysis

    @property
    def prices(self) -> List[float]:
        """Closing prices in ascending time order."""
        return [sample.price for sample in self.samples or []]

    @property
    def volumes(self) -> Optional[List[float]]:
        """Volumes if every sample carries one."""
        samples = self.samples or []
        if not samples or any(sample.volume is None for sample in samples):
            return None
        return [sample.volume for sample in samples]

    def __len__(self) -> int:
        return len(self.samples or [])

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert samples to pandas DataFrame for analysis.

        Returns:
            DataFrame indexed by timestamp with close/high/low/volume columns
        """
        if self.dataframe is not None:
            return self.dataframe

        if not self.samples:
            return pd.DataFrame()

        data = {
            'timestamp': [s.timestamp for s in self.samples],
            'close': [s.price for s in self.samples],
            'high': [s.high for s in self.samples],
            'low': [s.low for s in self.samples],
            'volume': [s.volume for s in self.samples]
        }

        df = pd.DataFrame(data)
        df.set_index('timestamp', inplace=True)
        self.dataframe = df
        return df
