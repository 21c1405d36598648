"""
Recurring pattern detection.

Each detector partitions a user's entries into buckets (day of week, time of
day, tag), averages the mood per bucket and measures how much the bucket
means vary. Detectors run independently: one scheme lacking data does not
suppress the others.
"""

import logging
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from mood_analytics.config import Settings, settings
from mood_analytics.schemas import MoodEntry, Pattern, PatternData, TimeOfDay
from mood_analytics.services.stats import coefficient_of_variation, mean

logger = logging.getLogger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
TIME_BUCKETS: List[TimeOfDay] = ["morning", "afternoon", "evening", "night"]


def time_of_day(hour: int) -> TimeOfDay:
    """Bucket an hour: morning 06-12, afternoon 12-18, evening 18-22, night 22-06."""
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


class PatternDetector:
    """Weekly, time-of-day and tag-based pattern detection."""

    # Sample counts at which a bucket's confidence reaches 1.0
    WEEKLY_FULL_CONFIDENCE = 4
    TEMPORAL_FULL_CONFIDENCE = 3
    TAG_FULL_CONFIDENCE = 5

    def __init__(self, config: Settings = settings):
        self.config = config
        self.zone = ZoneInfo(config.local_timezone)

    def detect_patterns(self, entries: Sequence[MoodEntry]) -> List[Pattern]:
        """
        Run all detectors over a user's history.

        Args:
            entries: A user's entries, most-recent-first

        Returns:
            Patterns above the minimum strength; empty below the entry minimum
        """
        if len(entries) < self.config.pattern_min_entries:
            return []

        patterns = []

        weekly = self.analyze_weekly(entries)
        if weekly:
            patterns.append(weekly)

        temporal = self.analyze_temporal(entries)
        if temporal:
            patterns.append(temporal)

        patterns.extend(self.analyze_tags(entries))
        return patterns

    def analyze_weekly(self, entries: Sequence[MoodEntry]) -> Optional[Pattern]:
        buckets: List[List[int]] = [[] for _ in DAY_NAMES]
        for entry in entries:
            weekday = entry.timestamp.astimezone(self.zone).weekday()
            buckets[weekday].append(entry.mood_score)

        populated = [
            (DAY_NAMES[day], mean(scores)) for day, scores in enumerate(buckets) if scores
        ]
        if len(populated) < self.config.weekly_min_days:
            return None

        strength = min(1.0, coefficient_of_variation([avg for _, avg in populated]))
        if strength < self.config.pattern_min_strength:
            logger.debug("Weekly pattern suppressed: strength %.3f", strength)
            return None

        best_day = max(populated, key=lambda item: item[1])[0]
        worst_day = min(populated, key=lambda item: item[1])[0]

        recommendation = None
        if best_day != worst_day:
            recommendation = (
                f"Your mood tends to be highest on {best_day}s and lowest on {worst_day}s. "
                f"Consider planning self-care activities for {worst_day}s."
            )

        return Pattern(
            type="weekly",
            description=f"Weekly mood pattern detected with {strength * 100:.0f}% variation",
            strength=strength,
            recommendation=recommendation,
            data=PatternData(
                labels=list(DAY_NAMES),
                values=[mean(scores) for scores in buckets],
                confidence=[
                    min(1.0, len(scores) / self.WEEKLY_FULL_CONFIDENCE) for scores in buckets
                ],
            ),
        )

    def analyze_temporal(self, entries: Sequence[MoodEntry]) -> Optional[Pattern]:
        buckets: Dict[str, List[int]] = {bucket: [] for bucket in TIME_BUCKETS}
        for entry in entries:
            hour = entry.timestamp.astimezone(self.zone).hour
            buckets[time_of_day(hour)].append(entry.mood_score)

        populated = [(bucket, scores) for bucket, scores in buckets.items() if scores]
        if len(populated) < self.config.temporal_min_buckets:
            return None

        averages = [mean(scores) for _, scores in populated]
        strength = min(1.0, coefficient_of_variation(averages))
        if strength < self.config.pattern_min_strength:
            logger.debug("Temporal pattern suppressed: strength %.3f", strength)
            return None

        labels = [bucket for bucket, _ in populated]
        best_time = labels[averages.index(max(averages))]
        worst_time = labels[averages.index(min(averages))]

        return Pattern(
            type="temporal",
            description=f"Time-based mood pattern with {strength * 100:.0f}% variation",
            strength=strength,
            recommendation=(
                f"Your mood is typically best in the {best_time} and lowest in the "
                f"{worst_time}. Consider scheduling important activities during your "
                "peak mood times."
            ),
            data=PatternData(
                labels=labels,
                values=averages,
                confidence=[
                    min(1.0, len(scores) / self.TEMPORAL_FULL_CONFIDENCE)
                    for _, scores in populated
                ],
            ),
        )

    def analyze_tags(self, entries: Sequence[MoodEntry]) -> List[Pattern]:
        overall_average = mean([entry.mood_score for entry in entries])
        if overall_average == 0:
            return []

        # Oldest first so tags are reported in order of first use
        tag_scores: Dict[str, List[int]] = {}
        for entry in reversed(entries):
            for tag in entry.tags:
                tag_scores.setdefault(tag, []).append(entry.mood_score)

        patterns = []
        for tag, scores in tag_scores.items():
            if len(scores) < self.config.tag_min_occurrences:
                continue

            average = mean(scores)
            impact = (average - overall_average) / overall_average
            strength = min(1.0, abs(impact))
            if abs(impact) <= self.config.tag_min_impact:
                continue
            if strength < self.config.pattern_min_strength:
                continue

            if impact > 0:
                description = (
                    f'The "{tag}" tag is associated with {impact * 100:.0f}% higher mood scores'
                )
                recommendation = f'Consider incorporating more "{tag}" activities into your routine'
            else:
                description = (
                    f'The "{tag}" tag is associated with {-impact * 100:.0f}% lower mood scores'
                )
                recommendation = (
                    f'The "{tag}" factor may be negatively affecting your mood. '
                    "Consider strategies to manage this influence"
                )

            patterns.append(
                Pattern(
                    type="tag-based",
                    description=description,
                    strength=strength,
                    recommendation=recommendation,
                    data=PatternData(
                        labels=[tag],
                        values=[average],
                        confidence=[min(1.0, len(scores) / self.TAG_FULL_CONFIDENCE)],
                    ),
                )
            )
        return patterns
