"""Export snapshot and summary assembly. Read-only aggregation."""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from mood_analytics.config import Settings, settings
from mood_analytics.factors import FACTOR_REGISTRY, FactorDefinition
from mood_analytics.schemas import (
    AnalyticsSummary,
    AssessmentCorrelationSummary,
    Correlation,
    ExportSnapshot,
    ExportSummary,
    Insight,
    MoodEntry,
    MoodRange,
    Pattern,
    TimeRange,
    Trend,
)
from mood_analytics.services.stats import mean


class ExportAssembler:
    """Packages a user's entries and current analytics into one snapshot."""

    def __init__(
        self,
        config: Settings = settings,
        registry: Optional[Dict[str, FactorDefinition]] = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else FACTOR_REGISTRY

    def assemble(
        self,
        user_id: str,
        entries: Sequence[MoodEntry],
        trends: Sequence[Trend],
        patterns: Sequence[Pattern],
        correlations: Sequence[Correlation],
        insights: Sequence[Insight],
        now: datetime,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ExportSnapshot:
        """
        Build an export snapshot.

        Args:
            user_id: Owner of the data
            entries: Entries inside the requested range, most-recent-first
            trends: Current trends
            patterns: Current patterns
            correlations: Current screening correlations
            insights: Current (non-expired) insights
            now: Export timestamp
            start: Requested range start (defaults to the oldest entry)
            end: Requested range end (defaults to the newest entry)

        Returns:
            ExportSnapshot; zeroed summary fields when there are no entries
        """
        if entries:
            default_start, default_end = entries[-1].timestamp, entries[0].timestamp
        else:
            default_start = default_end = now

        return ExportSnapshot(
            user_id=user_id,
            export_date=now,
            time_range=TimeRange(start=start or default_start, end=end or default_end),
            summary=self.summarize_entries(entries, trends),
            entries=list(entries),
            trends=list(trends),
            patterns=list(patterns),
            correlations=list(correlations),
            insights=list(insights),
            assessment_correlations=self.summarize_correlations(correlations),
        )

    def summarize_entries(
        self, entries: Sequence[MoodEntry], trends: Sequence[Trend]
    ) -> ExportSummary:
        scores = [entry.mood_score for entry in entries]

        tag_counts = Counter(tag for entry in entries for tag in entry.tags)
        common_tags = [
            tag for tag, _ in tag_counts.most_common(self.config.export_common_tags_limit)
        ]

        weekly = next((trend for trend in trends if trend.period == "weekly"), None)

        return ExportSummary(
            total_entries=len(entries),
            average_mood=mean(scores),
            mood_range=MoodRange(
                highest=max(scores) if scores else 0,
                lowest=min(scores) if scores else 0,
            ),
            trend_direction=weekly.direction if weekly else "stable",
            common_tags=common_tags,
            voice_note_count=sum(1 for entry in entries if entry.voice_note is not None),
        )

    def summarize_correlations(
        self, correlations: Sequence[Correlation]
    ) -> Optional[AssessmentCorrelationSummary]:
        if not correlations:
            return None

        findings: List[str] = []
        for correlation in correlations:
            if abs(correlation.correlation) <= self.config.export_significant_correlation:
                continue
            definition = self.registry.get(correlation.instrument)
            construct = definition.construct if definition else correlation.factor
            findings.append(
                f"Strong correlation with {construct} ({correlation.correlation * 100:.0f}%)"
            )

        return AssessmentCorrelationSummary(
            correlations={c.instrument: c.correlation for c in correlations},
            significant_findings=findings,
        )

    @staticmethod
    def summarize_activity(
        entries: Sequence[MoodEntry],
        insights: Sequence[Insight],
        trends: Sequence[Trend],
        patterns: Sequence[Pattern],
    ) -> AnalyticsSummary:
        """Counts and headline numbers for a dashboard tile."""
        return AnalyticsSummary(
            entries_count=len(entries),
            insights_count=len(insights),
            trends_count=len(trends),
            patterns_count=len(patterns),
            last_entry=entries[0].timestamp if entries else None,
            average_mood=mean([entry.mood_score for entry in entries]),
        )
