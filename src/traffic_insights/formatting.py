"""
Display formatting helpers for insights values.

Presentation layers render InsightsResponse values through these helpers.
Percent handling mirrors normalize_share: values above 1 are already
percentages, values at or below 1 are fractions.
"""

import math
import re
from datetime import datetime
from typing import Optional


NOT_AVAILABLE = "N/A"

YEAR_MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")
FULL_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

COMPACT_UNITS = (
    (1e12, "T"),
    (1e9, "B"),
    (1e6, "M"),
    (1e3, "K"),
)


def _is_missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(abs(value) * factor + 0.5) / factor * (1 if value >= 0 else -1)


def _trim_decimal(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_compact_number(value: Optional[float]) -> str:
    """Short human form with at most one decimal, e.g. 1234 -> "1.2K"."""
    if _is_missing(value):
        return NOT_AVAILABLE

    magnitude = abs(value)
    for index, (threshold, suffix) in enumerate(COMPACT_UNITS):
        if magnitude >= threshold:
            scaled = _round_half_up(magnitude / threshold, 1)
            # 999_950 rounds up to 1000K; promote to the next unit
            if scaled >= 1000 and index > 0:
                threshold, suffix = COMPACT_UNITS[index - 1]
                scaled = _round_half_up(magnitude / threshold, 1)
            sign = "-" if value < 0 else ""
            return f"{sign}{_trim_decimal(f'{scaled:.1f}')}{suffix}"

    rounded = _round_half_up(value, 1)
    if rounded >= 999.95:
        return "1K"
    return _trim_decimal(f"{rounded:.1f}")


def normalize_percent(value: Optional[float]) -> Optional[float]:
    """Express value as a percentage; fractions (<= 1) are scaled by 100."""
    if _is_missing(value):
        return None

    return value if value > 1 else value * 100


def format_percent(value: Optional[float]) -> str:
    """Percentage with at most one decimal, e.g. 0.552 -> "55.2%"."""
    normalized = normalize_percent(value)
    if normalized is None:
        return NOT_AVAILABLE

    rounded = _round_half_up(normalized, 1)
    return _trim_decimal(f"{rounded:,.1f}") + "%"


def format_duration(seconds: Optional[float]) -> str:
    """Seconds as m:ss, or h:mm:ss from one hour up."""
    if _is_missing(seconds):
        return NOT_AVAILABLE

    total_seconds = max(0, int(_round_half_up(seconds)))
    hours, rest = divmod(total_seconds, 3600)
    minutes, remaining = divmod(rest, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{remaining:02d}"

    return f"{minutes}:{remaining:02d}"


def format_date_label(value: str) -> str:
    """Axis label for a series date: "2024-01" -> "Jan 24", "2024-01-05" -> "Jan 5"."""
    if not value:
        return ""

    try:
        if YEAR_MONTH_PATTERN.match(value):
            date = datetime.strptime(value, "%Y-%m")
            return f"{date.strftime('%b')} {date.strftime('%y')}"

        if FULL_DATE_PATTERN.match(value):
            date = datetime.strptime(value, "%Y-%m-%d")
            return f"{date.strftime('%b')} {date.day}"
    except ValueError:
        return value

    return value
