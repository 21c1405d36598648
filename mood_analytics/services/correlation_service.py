"""Correlation between mood scores and paired clinical screening scores."""

import logging
from typing import Dict, List, Optional, Sequence

from mood_analytics.config import Settings, settings
from mood_analytics.factors import FACTOR_REGISTRY, FactorDefinition
from mood_analytics.schemas import Correlation, MoodEntry
from mood_analytics.services.stats import correlation_significance, pearson

logger = logging.getLogger(__name__)


class CorrelationAnalyzer:
    """
    Pearson correlation per registered screening instrument.

    The reported coefficient is sign-adjusted so a positive value always
    means the instrument moves with better mood. Screening scores where
    higher is worse are therefore negated.

    ``significance`` is a compressed t-statistic (see
    ``stats.correlation_significance``). It is a heuristic ranking signal,
    not a p-value, and should not be shown to users as a validated result.
    """

    def __init__(
        self,
        config: Settings = settings,
        registry: Optional[Dict[str, FactorDefinition]] = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else FACTOR_REGISTRY

    def compute_correlations(self, entries: Sequence[MoodEntry]) -> List[Correlation]:
        """
        Compute one correlation per instrument with enough paired entries.

        Args:
            entries: A user's entries (any order)

        Returns:
            Correlations in registry order; instruments with fewer than the
            minimum number of pairs are omitted
        """
        correlations = []
        for instrument, definition in self.registry.items():
            moods, scores = self.paired_series(entries, instrument)
            if len(moods) < self.config.correlation_min_pairs:
                logger.debug(
                    "Skipping %s correlation: %d paired entries", instrument, len(moods)
                )
                continue
            correlations.append(self.correlate(definition, moods, scores))
        return correlations

    @staticmethod
    def paired_series(entries: Sequence[MoodEntry], instrument: str):
        moods: List[int] = []
        scores: List[int] = []
        for entry in entries:
            if entry.assessment_correlation is None:
                continue
            score = entry.assessment_correlation.score_for(instrument)
            if score is None:
                continue
            moods.append(entry.mood_score)
            scores.append(score)
        return moods, scores

    def correlate(
        self, definition: FactorDefinition, moods: List[int], scores: List[int]
    ) -> Correlation:
        raw = pearson(moods, scores)
        significance = correlation_significance(raw, len(moods))

        reported = -raw if definition.inverted else raw
        reported = reported + 0.0  # normalize -0.0

        recommendation = (
            definition.strong_recommendation
            if reported > self.config.correlation_strong_threshold
            else definition.weak_recommendation
        )

        return Correlation(
            factor=definition.label,
            instrument=definition.instrument,
            correlation=reported,
            significance=significance,
            sample_size=len(moods),
            description=(
                f"{abs(raw) * 100:.0f}% correlation between mood entries and "
                f"{definition.construct} scores"
            ),
            recommendation=recommendation,
        )
