from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Index,
    JSON,
)
from sqlalchemy.sql import func

from mood_analytics.database import Base


class MoodEntryRecord(Base):
    """Append-only mood observation. Rows are never updated or deleted."""

    __tablename__ = "mood_entries"

    # Insertion sequence breaks ties between entries sharing a timestamp
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(255), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    mood_score = Column(Integer, nullable=False)  # 1-10 scale
    emoji = Column(String(32), default="")
    emotion = Column(String(64), default="")
    phrase = Column(Text, nullable=True)

    tags = Column(JSON, default=list)  # ["work", "exercise", ...]
    context = Column(JSON, nullable=True)  # {location, activity, social_setting, weather, time_of_day}
    voice_note = Column(JSON, nullable=True)  # {id, duration, transcript, sentiment_score}
    assessment_correlation = Column(
        JSON, nullable=True
    )  # {scores: [{instrument, score}], assessment_id, time_difference_hours}

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_mood_entries_user_id", "user_id"),
        Index("idx_mood_entries_user_timestamp", "user_id", "timestamp"),
    )
