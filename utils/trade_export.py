"""CSV export of the enhanced trade history."""
import logging
import os
from datetime import date, timezone
from typing import Iterable, List, Optional

from models.trade import Trade

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    'Timestamp', 'Asset', 'Action', 'Quantity', 'Price', 'NAV Before', 'NAV After', 'P&L',
    'Position Size %', 'AI Recommendation', 'AI Confidence', 'AI Reason', 'Model Version',
    'Market Regime', 'Stop Loss', 'Take Profit', 'Source', 'Mode', 'Trade ID', 'Notes'
]


def format_number(value: Optional[float]) -> str:
    """Shortest round-trip form; whole numbers print without a decimal part."""
    if value is None:
        return ''
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def quote(text: Optional[str]) -> str:
    """Always-quoted field with embedded quotes doubled."""
    return '"' + (text or '').replace('"', '""') + '"'


def format_timestamp(trade: Trade) -> str:
    return trade.timestamp.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def trade_to_row(trade: Trade) -> List[str]:
    """CSV fields for one trade, in header order."""
    return [
        format_timestamp(trade),
        trade.asset,
        trade.action.value,
        format_number(trade.quantity),
        format_number(trade.price),
        format_number(trade.nav_before),
        format_number(trade.nav_after),
        f"{trade.pnl:.2f}",
        f"{trade.position_size_fraction * 100:.2f}%",
        trade.ai_recommendation.value,
        f"{format_number(trade.ai_confidence)}%",
        quote(trade.ai_reason),
        trade.model_version,
        trade.regime.value,
        format_number(trade.stop_loss) if trade.stop_loss else '',
        format_number(trade.take_profit) if trade.take_profit else '',
        trade.source.value,
        trade.mode.value,
        trade.trade_id or '',
        quote(trade.notes)
    ]


def trades_to_csv(trades: Iterable[Trade]) -> str:
    """
    Render trades as CSV text.

    Free-text columns (AI Reason, Notes) are always quoted; every other
    column is written bare. Lines are joined with ``\\n`` and there is no
    trailing newline.
    """
    lines = [','.join(CSV_HEADERS)]
    lines.extend(','.join(trade_to_row(trade)) for trade in trades)
    return '\n'.join(lines)


def export_filename(day: date) -> str:
    return f"enhanced_trade_history_{day.isoformat()}.csv"


def export_trades(trades: Iterable[Trade], directory: str, day: date) -> str:
    """
    Write trades to ``<directory>/enhanced_trade_history_<day>.csv``.

    Returns:
        Path of the written file
    """
    trades = list(trades)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, export_filename(day))
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(trades_to_csv(trades))
    logger.info(f"Exported {len(trades)} trades to {path}")
    return path
