"""
Data models for the traffic insights pipeline.

This module defines the typed values produced by response parsing and the
aggregate result handed to presentation layers.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import InsightMode


PROVIDER_NAME = "Similarweb"


@dataclass
class TimeseriesPoint:
    """A single dated measurement. Dates are YYYY-MM or YYYY-MM-DD."""

    date: str
    value: float

    def to_dict(self) -> dict:
        return {"date": self.date, "value": self.value}


@dataclass
class ChannelShare:
    """Share of visits from one traffic channel, as a fraction in [0, 1]."""

    channel: str
    share: float

    def to_dict(self) -> dict:
        return {"channel": self.channel, "share": self.share}


@dataclass
class InsightsSummary:
    """Latest value per metric; None when the metric is unavailable."""

    latest_visits: Optional[float] = None
    latest_bounce_rate: Optional[float] = None
    latest_pages_per_visit: Optional[float] = None
    latest_avg_duration_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        summary = {
            "latestVisits": self.latest_visits,
            "latestBounceRate": self.latest_bounce_rate,
            "latestPagesPerVisit": self.latest_pages_per_visit,
            "latestAvgDurationSeconds": self.latest_avg_duration_seconds,
        }
        return {key: value for key, value in summary.items() if value is not None}


@dataclass
class InsightsTimeseries:
    """Time series for the four engagement metrics."""

    visits: list[TimeseriesPoint] = field(default_factory=list)
    bounce_rate: list[TimeseriesPoint] = field(default_factory=list)
    pages_per_visit: list[TimeseriesPoint] = field(default_factory=list)
    avg_duration: list[TimeseriesPoint] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.visits or self.bounce_rate or self.pages_per_visit or self.avg_duration
        )

    def to_dict(self) -> dict:
        return {
            "visits": [p.to_dict() for p in self.visits],
            "bounceRate": [p.to_dict() for p in self.bounce_rate],
            "pagesPerVisit": [p.to_dict() for p in self.pages_per_visit],
            "avgDuration": [p.to_dict() for p in self.avg_duration],
        }


@dataclass
class CoverageMeta:
    """Coverage metadata: whether data is partial and why."""

    partial: bool
    notes: list[str] = field(default_factory=list)


@dataclass
class InsightsResult:
    """
    Aggregated provider data for one domain.

    meta.partial is true iff at least one note exists or every collection
    is empty.
    """

    summary: InsightsSummary
    timeseries: InsightsTimeseries
    channels: list[ChannelShare]
    meta: CoverageMeta

    def is_empty(self) -> bool:
        return self.timeseries.is_empty() and not self.channels


@dataclass
class InsightsResponse:
    """Result of the inbound query operation, echoing the resolved request."""

    domain: str
    mode: InsightMode
    fetched_at: str
    result: InsightsResult
    provider: str = PROVIDER_NAME

    def to_dict(self) -> dict:
        """Wire representation consumed by presentation layers."""
        return {
            "domain": self.domain,
            "mode": self.mode.value,
            "summary": self.result.summary.to_dict(),
            "timeseries": self.result.timeseries.to_dict(),
            "channels": [c.to_dict() for c in self.result.channels],
            "meta": {
                "provider": self.provider,
                "fetchedAt": self.fetched_at,
                "partial": self.result.meta.partial,
                "notes": list(self.result.meta.notes),
            },
        }
