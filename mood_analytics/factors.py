"""
Registry of external screening instruments that can be paired with mood entries.

Adding an instrument means adding its score model to ``ScreeningScore`` in
schemas.py and registering a definition here.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FactorDefinition:
    instrument: str
    label: str
    construct: str  # used in generated text, e.g. "depression screening"
    # Higher score = worse state, so the correlation sign is flipped
    inverted: bool
    strong_recommendation: str
    weak_recommendation: str


FACTOR_REGISTRY: dict[str, FactorDefinition] = {
    "phq4": FactorDefinition(
        instrument="phq4",
        label="PHQ-4 Depression Screening",
        construct="depression screening",
        inverted=True,
        strong_recommendation=(
            "Strong correlation detected. Mood entries effectively track your "
            "mental health progress."
        ),
        weak_recommendation=(
            "Consider more detailed mood tracking to better understand your "
            "mental health patterns."
        ),
    ),
    "gad7": FactorDefinition(
        instrument="gad7",
        label="GAD-7 Anxiety Assessment",
        construct="anxiety assessment",
        inverted=True,
        strong_recommendation="Mood tracking shows good alignment with your anxiety levels.",
        weak_recommendation=(
            "Consider noting anxiety-specific symptoms in your mood entries for "
            "better tracking."
        ),
    ),
}
