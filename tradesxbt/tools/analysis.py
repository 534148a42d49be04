"""
Technical indicators used by the analysis tools.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

TREND_THRESHOLD = 5.0
SIGNAL_THRESHOLD = 5.0
BASE_CONFIDENCE = 0.6
MAX_CONFIDENCE = 0.9
SIGNAL_WARNING = (
    "This is a simplified trading signal for demonstration. Always perform your "
    "own analysis and consider risk factors. Not financial advice."
)

TIMEFRAME_DAYS = {"24h": 1, "7d": 7, "30d": 30, "90d": 90}


@dataclass(frozen=True)
class TrendAnalysis:
    trend: str
    percent_change: float
    sma7: Optional[float]
    sma30: Optional[float]


def percent_change(first: float, last: float) -> float:
    """Percent change from first to last (0 when first is 0)."""
    if not first:
        return 0.0
    return (last - first) / first * 100


def simple_moving_average(values: Sequence[float], window: int) -> Optional[float]:
    """Mean of the last `window` values, or None if there are fewer."""
    if window <= 0 or len(values) < window:
        return None
    return sum(values[-window:]) / window


def analyze_price_series(prices: Sequence[Sequence[float]]) -> TrendAnalysis:
    """
    Classify a [timestamp, price] series.

    Returns:
        TrendAnalysis; "bullish" above +5%, "bearish" below -5%, "neutral" otherwise
    """
    values = [float(point[1]) for point in prices]
    change = percent_change(values[0], values[-1]) if values else 0.0

    trend = "neutral"
    if change > TREND_THRESHOLD:
        trend = "bullish"
    elif change < -TREND_THRESHOLD:
        trend = "bearish"

    return TrendAnalysis(
        trend=trend,
        percent_change=change,
        sma7=simple_moving_average(values, 7),
        sma30=simple_moving_average(values, 30),
    )


def trading_signal(change_24h: Optional[float]) -> tuple[str, float]:
    """
    Mean-reversion signal from the 24h price change.

    A rise above 5% suggests SELL, a fall below -5% suggests BUY. Confidence
    grows with the size of the move and is capped at 0.9.

    Returns:
        Tuple of (signal, confidence)
    """
    change = change_24h or 0.0
    if change > SIGNAL_THRESHOLD:
        signal = "SELL"
    elif change < -SIGNAL_THRESHOLD:
        signal = "BUY"
    else:
        return "HOLD", 0.5
    confidence = BASE_CONFIDENCE + min(abs(change), 20) / 100
    return signal, min(confidence, MAX_CONFIDENCE)
