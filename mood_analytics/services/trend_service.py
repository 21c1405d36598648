"""Trend calculation over sliding lookback windows."""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from mood_analytics.config import Settings, settings
from mood_analytics.schemas import Direction, MoodEntry, SignificantEvent, Trend
from mood_analytics.services.stats import linear_fit, mean, population_std

logger = logging.getLogger(__name__)


class TrendCalculator:
    """Fits a least-squares line to each period's window of mood scores."""

    def __init__(
        self,
        config: Settings = settings,
        periods: Optional[Dict[str, int]] = None,
    ):
        self.config = config
        # period -> lookback days, evaluated in this order
        self.periods = periods or {
            "daily": config.trend_daily_days,
            "weekly": config.trend_weekly_days,
            "monthly": config.trend_monthly_days,
        }

    @property
    def longest_lookback(self) -> int:
        return max(self.periods.values())

    def compute_trends(self, entries: Sequence[MoodEntry], now: datetime) -> List[Trend]:
        """
        Compute one trend per period that has enough entries in its window.

        Args:
            entries: A user's entries, most-recent-first
            now: End of every lookback window

        Returns:
            Trends in period order; periods with too few entries are omitted
        """
        trends = []
        for period, days in self.periods.items():
            trend = self.compute_period_trend(entries, period, days, now)
            if trend is not None:
                trends.append(trend)
        return trends

    def compute_period_trend(
        self,
        entries: Sequence[MoodEntry],
        period: str,
        days: int,
        now: datetime,
    ) -> Optional[Trend]:
        window = self.select_window(entries, days, now)
        if len(window) < self.config.trend_min_entries:
            logger.debug(
                "Skipping %s trend: %d entries in %d-day window", period, len(window), days
            )
            return None

        scores = [entry.mood_score for entry in window]
        fit = linear_fit(scores)

        return Trend(
            period=period,
            direction=self.classify_direction(fit.slope),
            change=self.percent_change(scores),
            confidence=fit.r_squared,
            slope=fit.slope,
            sample_size=len(window),
            significant_events=self.find_significant_events(window),
        )

    @staticmethod
    def select_window(
        entries: Sequence[MoodEntry], days: int, now: datetime
    ) -> List[MoodEntry]:
        """Entries in [now - days, now], oldest first."""
        cutoff = now - timedelta(days=days)
        return [entry for entry in reversed(entries) if cutoff <= entry.timestamp <= now]

    def classify_direction(self, slope: float) -> Direction:
        threshold = self.config.trend_slope_threshold
        if slope > threshold:
            return "improving"
        if slope < -threshold:
            return "declining"
        return "stable"

    @staticmethod
    def percent_change(scores: Sequence[int]) -> float:
        """Percent difference of the later half's mean over the earlier half's."""
        half = len(scores) // 2
        earlier = mean(scores[:half])
        later = mean(scores[half:])
        if earlier == 0:
            return 0.0
        return (later - earlier) / earlier * 100

    def find_significant_events(self, window: Sequence[MoodEntry]) -> List[SignificantEvent]:
        """Peaks and dips whose z-score exceeds the configured threshold."""
        if len(window) < self.config.significant_event_min_entries:
            return []

        scores = [entry.mood_score for entry in window]
        avg = mean(scores)
        std_dev = population_std(scores)
        if std_dev == 0:
            return []

        events = []
        for entry in window:
            z_score = (entry.mood_score - avg) / std_dev
            if abs(z_score) <= self.config.significant_event_z:
                continue

            context = entry.phrase or ""
            if entry.tags:
                context += f" ({', '.join(entry.tags)})"

            events.append(
                SignificantEvent(
                    date=entry.timestamp,
                    type="peak" if z_score > 0 else "dip",
                    context=context.strip() or None,
                )
            )
        return events
