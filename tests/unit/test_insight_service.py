"""
Unit tests for InsightGenerator and InsightStore.

Tests the insight rules (trend, pattern, correlation, recent mood),
priority ordering, the minimum-history gate and replace-on-save storage.
"""
import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from mood_analytics.schemas import Correlation, Pattern, PatternData, Trend
from mood_analytics.services.insight_service import InsightGenerator, InsightStore
from tests.factories import DEFAULT_NOW, make_series


@pytest.fixture
def generator(config) -> InsightGenerator:
    return InsightGenerator(config)


def make_trend(direction="declining", change=-15.0, confidence=0.9, period="weekly") -> Trend:
    return Trend(
        period=period,
        direction=direction,
        change=change,
        confidence=confidence,
        slope=-0.5 if direction == "declining" else 0.5,
        sample_size=10,
    )


def make_pattern(type_, strength, recommendation="Try something") -> Pattern:
    return Pattern(
        type=type_,
        description=f"{type_} pattern",
        strength=strength,
        recommendation=recommendation,
        data=PatternData(labels=["a"], values=[1.0], confidence=[1.0]),
    )


def make_correlation(significance, instrument="phq4") -> Correlation:
    return Correlation(
        factor="PHQ-4 Depression Screening",
        instrument=instrument,
        correlation=0.8,
        significance=significance,
        sample_size=12,
        description="80% correlation between mood entries and depression screening scores",
        recommendation="Keep tracking",
    )


class TestGenerate:
    """Tests for full insight generation from entries."""

    def test_too_few_entries_skips_analysis(self, config):
        trend_calculator = MagicMock()
        generator = InsightGenerator(config, trend_calculator=trend_calculator)

        insights = generator.generate(make_series([2, 2]), DEFAULT_NOW)

        assert insights == []
        trend_calculator.compute_trends.assert_not_called()

    def test_low_recent_mood_raises_alert(self, generator):
        insights = generator.generate(make_series([3, 2, 3]), DEFAULT_NOW)

        assert len(insights) == 1
        alert = insights[0]
        assert alert.id == "alert-low-mood"
        assert alert.type == "alert"
        assert alert.priority == "critical"
        assert alert.actionable is True
        assert alert.expires_at == DEFAULT_NOW + timedelta(days=7)
        assert "average: 2.7/10" in alert.description

    def test_high_recent_mood_gives_encouragement(self, generator):
        insights = generator.generate(make_series([8, 9, 8]), DEFAULT_NOW)

        assert len(insights) == 1
        positive = insights[0]
        assert positive.id == "recommendation-positive"
        assert positive.priority == "low"
        assert positive.actionable is False
        assert positive.expires_at is None

    def test_recent_window_uses_latest_entries(self, generator):
        # Old lows followed by seven recent highs
        entries = make_series([1, 1, 1, 8, 8, 8, 8, 8, 8, 8])

        ids = [i.id for i in generator.generate(entries, DEFAULT_NOW)]

        assert "alert-low-mood" not in ids
        assert "recommendation-positive" in ids

    def test_generation_is_deterministic(self, generator):
        entries = make_series([2, 3, 4, 5, 6, 7, 3, 2, 8])

        first = generator.generate(entries, DEFAULT_NOW)
        second = generator.generate(entries, DEFAULT_NOW)

        assert first == second


class TestBuildInsights:
    """Tests for rule thresholds and priority ordering."""

    def test_priority_ordering(self, generator):
        entries = make_series([2, 2, 2])
        trends = [make_trend()]
        patterns = [
            make_pattern("weekly", 0.7),
            make_pattern("tag-based", 0.4),
            make_pattern("temporal", 0.2),
        ]
        correlations = [make_correlation(0.9), make_correlation(0.4, instrument="gad7")]

        insights = generator.build_insights(entries, trends, patterns, correlations, DEFAULT_NOW)

        assert [(i.id, i.priority) for i in insights] == [
            ("alert-low-mood", "critical"),
            ("trend-weekly", "high"),
            ("correlation-phq4", "high"),
            ("pattern-weekly-0", "medium"),
            ("pattern-tag-based-1", "low"),
        ]

    def test_trend_insight_content(self, generator):
        insight = generator.build_insights(
            make_series([5, 5, 5]), [make_trend()], [], [], DEFAULT_NOW
        )[0]

        assert insight.type == "trend"
        assert insight.title == "Weekly Mood Declining"
        assert insight.description == (
            "Your mood has been declining by 15.0% over the past weekly period."
        )
        assert insight.actionable is True
        assert insight.data["direction"] == "declining"

    def test_low_confidence_trend_is_skipped(self, generator):
        insights = generator.build_insights(
            make_series([5, 5, 5]), [make_trend(confidence=0.7)], [], [], DEFAULT_NOW
        )

        assert insights == []

    @pytest.mark.parametrize("change,priority", [(25.0, "high"), (15.0, "medium"), (5.0, "low")])
    def test_improving_trend_priority_by_change(self, generator, change, priority):
        trend = make_trend(direction="improving", change=change)

        insight = generator.build_insights(
            make_series([5, 5, 5]), [trend], [], [], DEFAULT_NOW
        )[0]

        assert insight.priority == priority
        assert insight.actionable is False

    def test_pattern_title(self, generator):
        insight = generator.build_insights(
            make_series([5, 5, 5]), [], [make_pattern("tag-based", 0.5)], [], DEFAULT_NOW
        )[0]

        assert insight.title == "Tag-based Pattern Detected"
        assert insight.description == "tag-based pattern"


class TestInsightStore:
    """Tests for replace-on-save storage."""

    def test_replace_discards_previous_set(self, generator):
        store = InsightStore()
        store.replace("user-1", generator.generate(make_series([3, 2, 3]), DEFAULT_NOW))
        store.replace("user-1", generator.generate(make_series([8, 9, 8]), DEFAULT_NOW))

        assert [i.id for i in store.get("user-1")] == ["recommendation-positive"]

    def test_expired_insights_are_filtered(self, generator):
        store = InsightStore()
        store.replace("user-1", generator.generate(make_series([3, 2, 3]), DEFAULT_NOW))

        assert len(store.get("user-1", now=DEFAULT_NOW + timedelta(days=6))) == 1
        assert store.get("user-1", now=DEFAULT_NOW + timedelta(days=7)) == []

    def test_unknown_user(self):
        assert InsightStore().get("nobody") == []
