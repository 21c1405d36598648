"""
Insight generation.

Fuses trends, patterns, correlations and the recent mood average into a
ranked list of user-facing insights. Every run is a full recomputation whose
result replaces the user's previous insight set.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from mood_analytics.config import Settings, settings
from mood_analytics.schemas import (
    PRIORITY_RANK,
    Correlation,
    Insight,
    MoodEntry,
    Pattern,
    Priority,
    Trend,
)
from mood_analytics.services.correlation_service import CorrelationAnalyzer
from mood_analytics.services.pattern_service import PatternDetector
from mood_analytics.services.stats import mean
from mood_analytics.services.trend_service import TrendCalculator

logger = logging.getLogger(__name__)


class InsightStore:
    """Latest insight set per user. Saving replaces, never merges."""

    def __init__(self):
        self._insights: Dict[str, List[Insight]] = {}

    def replace(self, user_id: str, insights: Sequence[Insight]) -> None:
        self._insights[user_id] = list(insights)

    def get(self, user_id: str, now: Optional[datetime] = None) -> List[Insight]:
        """Stored insights for a user, dropping any expired as of ``now``."""
        insights = self._insights.get(user_id, [])
        if now is None:
            return list(insights)
        return [insight for insight in insights if not insight.is_expired(now)]


class InsightGenerator:
    """Service for turning analyzer output into prioritized insights."""

    def __init__(
        self,
        config: Settings = settings,
        trend_calculator: Optional[TrendCalculator] = None,
        pattern_detector: Optional[PatternDetector] = None,
        correlation_analyzer: Optional[CorrelationAnalyzer] = None,
    ):
        self.config = config
        self.trend_calculator = trend_calculator or TrendCalculator(config)
        self.pattern_detector = pattern_detector or PatternDetector(config)
        self.correlation_analyzer = correlation_analyzer or CorrelationAnalyzer(config)

    def generate(self, entries: Sequence[MoodEntry], now: datetime) -> List[Insight]:
        """
        Generate insights for one user's history.

        Args:
            entries: A user's entries, most-recent-first
            now: Generation time; also anchors trend windows and expiry

        Returns:
            Insights ordered by priority (critical first). Empty, without
            running any analyzer, when the user has too few entries.
        """
        if len(entries) < self.config.insight_min_entries:
            return []

        trends = self.trend_calculator.compute_trends(entries, now)
        patterns = self.pattern_detector.detect_patterns(entries)
        correlations = self.correlation_analyzer.compute_correlations(entries)
        return self.build_insights(entries, trends, patterns, correlations, now)

    def build_insights(
        self,
        entries: Sequence[MoodEntry],
        trends: Sequence[Trend],
        patterns: Sequence[Pattern],
        correlations: Sequence[Correlation],
        now: datetime,
    ) -> List[Insight]:
        insights: List[Insight] = []

        for trend in trends:
            if trend.confidence > self.config.insight_trend_confidence:
                insights.append(self._trend_insight(trend, now))

        for index, pattern in enumerate(patterns):
            if pattern.strength > self.config.insight_pattern_strength:
                insights.append(self._pattern_insight(pattern, index, now))

        for correlation in correlations:
            if correlation.significance > self.config.insight_correlation_significance:
                insights.append(self._correlation_insight(correlation, now))

        insights.extend(self._recent_mood_insights(entries, now))

        # Stable sort keeps rule order within a priority level
        return sorted(insights, key=lambda i: PRIORITY_RANK[i.priority], reverse=True)

    def _trend_priority(self, trend: Trend) -> Priority:
        if trend.direction == "declining":
            return "high"
        change = abs(trend.change)
        if change > self.config.insight_change_high:
            return "high"
        if change > self.config.insight_change_medium:
            return "medium"
        return "low"

    def _trend_insight(self, trend: Trend, now: datetime) -> Insight:
        return Insight(
            id=f"trend-{trend.period}",
            type="trend",
            title=f"{trend.period.capitalize()} Mood {trend.direction.capitalize()}",
            description=(
                f"Your mood has been {trend.direction} by {abs(trend.change):.1f}% "
                f"over the past {trend.period} period."
            ),
            data=trend.model_dump(mode="json"),
            actionable=trend.direction == "declining",
            priority=self._trend_priority(trend),
            generated_at=now,
        )

    def _pattern_insight(self, pattern: Pattern, index: int, now: datetime) -> Insight:
        if pattern.strength > self.config.insight_pattern_strength_medium:
            priority = "medium"
        else:
            priority = "low"

        return Insight(
            id=f"pattern-{pattern.type}-{index}",
            type="pattern",
            title=f"{pattern.type.capitalize()} Pattern Detected",
            description=pattern.description,
            data=pattern.model_dump(mode="json"),
            actionable=bool(pattern.recommendation),
            priority=priority,
            generated_at=now,
        )

    def _correlation_insight(self, correlation: Correlation, now: datetime) -> Insight:
        if correlation.significance > self.config.insight_correlation_significance_high:
            priority = "high"
        else:
            priority = "medium"

        return Insight(
            id=f"correlation-{correlation.instrument}",
            type="correlation",
            title=f"{correlation.factor} Correlation",
            description=correlation.description,
            data=correlation.model_dump(mode="json"),
            actionable=bool(correlation.recommendation),
            priority=priority,
            generated_at=now,
        )

    def _recent_mood_insights(
        self, entries: Sequence[MoodEntry], now: datetime
    ) -> List[Insight]:
        recent = list(entries[: self.config.recent_window_entries])
        if len(recent) < self.config.recent_min_entries:
            return []

        recent_average = mean([entry.mood_score for entry in recent])
        insights = []

        if recent_average < self.config.low_mood_threshold:
            logger.info(
                "Low mood alert for user %s (recent average %.2f)",
                recent[0].user_id,
                recent_average,
            )
            insights.append(
                Insight(
                    id="alert-low-mood",
                    type="alert",
                    title="Low Mood Alert",
                    description=(
                        "Your recent mood scores have been consistently low "
                        f"(average: {recent_average:.1f}/10). Consider reaching out for support."
                    ),
                    data={"recent_average": recent_average, "sample_size": len(recent)},
                    actionable=True,
                    priority="critical",
                    generated_at=now,
                    expires_at=now + timedelta(days=self.config.alert_lifetime_days),
                )
            )

        if recent_average > self.config.positive_mood_threshold:
            insights.append(
                Insight(
                    id="recommendation-positive",
                    type="recommendation",
                    title="Great Progress!",
                    description=(
                        "Your mood has been consistently positive "
                        f"(average: {recent_average:.1f}/10). Keep up the great work!"
                    ),
                    data={"recent_average": recent_average, "sample_size": len(recent)},
                    actionable=False,
                    priority="low",
                    generated_at=now,
                )
            )

        return insights
