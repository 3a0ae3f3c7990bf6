"""
Response parsing for provider payloads.

Provider responses are loosely structured: the same series may arrive as a
bare list, under its own key, under "data", or wrapped as {key: {"data": [...]}}.
Parsing is driven by prioritized fallback key lists and an ordered table of
shape probes, so shape drift is handled here and nowhere else.
"""

from typing import Any, Callable, Optional, Sequence

from .models import ChannelShare, TimeseriesPoint


# Fallback keys per metric, highest priority first
SERIES_KEYS: dict[str, list[str]] = {
    "visits": ["visits", "data"],
    "bounce_rate": ["bounce_rate", "bounceRate", "data"],
    "pages_per_visit": ["pages_per_visit", "pagesPerVisit", "data"],
    "avg_duration": ["average_visit_duration", "avgDuration", "data"],
}

CHANNEL_LABEL_KEYS = ("channel", "source", "name")
CHANNEL_SHARE_KEYS = ("share", "value")


def _probe_top_level(raw: dict, key: str) -> Any:
    return raw.get(key)


def _probe_nested_data(raw: dict, key: str) -> Any:
    nested = raw.get("data")
    if isinstance(nested, dict):
        return nested.get(key)
    return None


def _probe_data_under_key(raw: dict, key: str) -> Any:
    value = raw.get(key)
    if isinstance(value, dict):
        return value.get("data")
    return None


# Evaluated in order; the first probe returning a list wins
SHAPE_PROBES: tuple[Callable[[dict, str], Any], ...] = (
    _probe_top_level,
    _probe_nested_data,
    _probe_data_under_key,
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_array(raw: Any, key: str) -> Optional[list]:
    """
    Locate the list stored for key in a provider payload.

    Args:
        raw: Decoded JSON payload
        key: Candidate key name

    Returns:
        The list found, or None
    """
    if not raw:
        return None

    if isinstance(raw, list):
        return raw

    if not isinstance(raw, dict):
        return None

    for probe in SHAPE_PROBES:
        candidate = probe(raw, key)
        if isinstance(candidate, list):
            return candidate

    return None


def _parse_points(candidate: list) -> Optional[list[TimeseriesPoint]]:
    """
    Parse list elements into points.

    Every element must carry a string date and a numeric or null value;
    a single malformed element rejects the whole candidate.
    """
    points = []
    for item in candidate:
        if not isinstance(item, dict):
            return None
        date = item.get("date")
        if not isinstance(date, str):
            return None
        if "value" not in item:
            return None
        value = item["value"]
        if value is None:
            continue
        if not _is_number(value):
            return None
        points.append(TimeseriesPoint(date=date, value=value))
    return points


def parse_series(raw: Any, keys: Sequence[str]) -> Optional[list[TimeseriesPoint]]:
    """
    Extract a time series using prioritized fallback keys.

    Args:
        raw: Decoded JSON payload
        keys: Candidate keys, highest priority first (defaults to ["data"])

    Returns:
        Points from the first key yielding at least one point, or None
    """
    key_list = list(keys) or ["data"]

    for key in key_list:
        candidate = extract_array(raw, key)
        if not candidate:
            continue

        points = _parse_points(candidate)
        if points:
            return points

    return None


def normalize_share(value: float) -> float:
    """Values above 1 are percentages; everything else is already a fraction."""
    if value > 1:
        return value / 100
    return value


def _first_present(item: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def parse_channels(raw: Any) -> Optional[list[ChannelShare]]:
    """
    Extract channel shares from a provider payload.

    Accepts a list of objects labelled by channel/source/name with a
    share/value number, or a flat {channel: number} mapping. A mapping
    may wrap either form in "data".

    Returns:
        Normalized channel shares in payload order, or None
    """
    if not raw:
        return None

    if isinstance(raw, list):
        data = raw
    elif isinstance(raw, dict):
        data = raw.get("data")
        if data is None:
            data = raw
    else:
        return None

    if isinstance(data, list):
        channels = []
        for item in data:
            if not isinstance(item, dict):
                return None
            label = _first_present(item, CHANNEL_LABEL_KEYS)
            share = None
            for key in CHANNEL_SHARE_KEYS:
                if item.get(key) is not None:
                    share = item[key]
                    break
            if not isinstance(label, str) or not _is_number(share):
                continue
            channels.append(ChannelShare(channel=label, share=normalize_share(share)))
        return channels or None

    if isinstance(data, dict):
        channels = [
            ChannelShare(channel=name, share=normalize_share(value))
            for name, value in data.items()
            if _is_number(value)
        ]
        return channels or None

    return None


def latest_value(series: Sequence[TimeseriesPoint]) -> Optional[float]:
    """Value of the point with the greatest date label, or None for an empty series."""
    if not series:
        return None

    ordered = sorted(series, key=lambda point: point.date)
    return ordered[-1].value
