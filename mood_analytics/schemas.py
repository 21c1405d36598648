"""
Pydantic models for mood entries and everything derived from them.

Entries are validated at the ingestion boundary and frozen afterwards;
corrections are new entries. Derived models (trends, patterns, correlations,
insights, exports) are recomputed on request and never mutated.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


Period = Literal["daily", "weekly", "monthly"]
Direction = Literal["improving", "stable", "declining"]
PatternType = Literal["weekly", "temporal", "tag-based"]
InsightType = Literal["trend", "pattern", "correlation", "recommendation", "alert"]
Priority = Literal["low", "medium", "high", "critical"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]

PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Screening instruments paired with an entry - Discriminated Union ---


class PHQ4Score(FrozenModel):
    instrument: Literal["phq4"] = "phq4"
    score: int = Field(ge=0, le=12)


class GAD7Score(FrozenModel):
    instrument: Literal["gad7"] = "gad7"
    score: int = Field(ge=0, le=21)


ScreeningScore = Annotated[
    PHQ4Score | GAD7Score,
    Field(discriminator="instrument"),
]


class AssessmentCorrelation(FrozenModel):
    """Screening scores captured near the time of a mood entry."""

    scores: tuple[ScreeningScore, ...] = ()
    assessment_id: Optional[str] = None
    time_difference_hours: Optional[float] = None  # gap between entry and assessment

    @field_validator("scores")
    @classmethod
    def _one_score_per_instrument(cls, scores):
        instruments = [s.instrument for s in scores]
        if len(instruments) != len(set(instruments)):
            raise ValueError("each instrument may appear at most once")
        return scores

    def score_for(self, instrument: str) -> Optional[int]:
        for screening in self.scores:
            if screening.instrument == instrument:
                return screening.score
        return None


# --- Mood entry ---


class VoiceNote(FrozenModel):
    id: str
    duration: float = Field(ge=0)  # seconds
    transcript: Optional[str] = None
    sentiment_score: Optional[float] = None


class EntryContext(FrozenModel):
    location: Optional[str] = None
    activity: Optional[str] = None
    social_setting: Optional[str] = None
    weather: Optional[str] = None
    time_of_day: Optional[TimeOfDay] = None


class MoodEntry(FrozenModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    timestamp: datetime
    mood_score: int = Field(ge=1, le=10, strict=True)
    emoji: str = ""
    emotion: str = ""
    phrase: Optional[str] = None
    voice_note: Optional[VoiceNote] = None
    tags: tuple[str, ...] = ()
    context: Optional[EntryContext] = None
    assessment_correlation: Optional[AssessmentCorrelation] = None

    @field_validator("user_id")
    @classmethod
    def _user_id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("user_id must not be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def _timestamp_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are treated as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, tags: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = (tag.strip() for tag in tags)
        return tuple(dict.fromkeys(tag for tag in cleaned if tag))


# --- Trends ---


class SignificantEvent(FrozenModel):
    date: datetime
    type: Literal["peak", "dip"]
    context: Optional[str] = None


class Trend(FrozenModel):
    period: Period
    direction: Direction
    change: float  # percent, later half vs earlier half
    confidence: float = Field(ge=0, le=1)  # R^2 of the fit
    slope: float
    sample_size: int
    significant_events: list[SignificantEvent] = []


# --- Patterns ---


class PatternData(FrozenModel):
    labels: list[str]
    values: list[float]
    confidence: list[float]


class Pattern(FrozenModel):
    type: PatternType
    description: str
    strength: float = Field(ge=0, le=1)
    recommendation: Optional[str] = None
    data: PatternData


# --- Correlations ---


class Correlation(FrozenModel):
    factor: str
    instrument: str
    correlation: float = Field(ge=-1, le=1)
    significance: float = Field(ge=0, le=1)
    sample_size: int
    description: str
    recommendation: Optional[str] = None


# --- Insights ---


class Insight(FrozenModel):
    id: str
    type: InsightType
    title: str
    description: str
    data: Optional[dict[str, Any]] = None
    actionable: bool
    priority: Priority
    generated_at: datetime
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


# --- Export / summary ---


class TimeRange(FrozenModel):
    start: datetime
    end: datetime


class MoodRange(FrozenModel):
    highest: int
    lowest: int


class ExportSummary(FrozenModel):
    total_entries: int
    average_mood: float
    mood_range: MoodRange
    trend_direction: Direction
    common_tags: list[str]
    voice_note_count: int


class AssessmentCorrelationSummary(FrozenModel):
    correlations: dict[str, float]  # instrument -> reported correlation
    significant_findings: list[str]


class ExportSnapshot(FrozenModel):
    user_id: str
    export_date: datetime
    time_range: TimeRange
    summary: ExportSummary
    entries: list[MoodEntry]
    trends: list[Trend]
    patterns: list[Pattern]
    correlations: list[Correlation]
    insights: list[Insight]
    assessment_correlations: Optional[AssessmentCorrelationSummary] = None


class AnalyticsSummary(FrozenModel):
    entries_count: int
    insights_count: int
    trends_count: int
    patterns_count: int
    last_entry: Optional[datetime] = None
    average_mood: float
