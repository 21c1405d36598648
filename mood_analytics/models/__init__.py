"""
Database models for the mood analytics engine.

Import all models here so they are registered on Base.metadata.
"""

from mood_analytics.database import Base
from mood_analytics.models.mood_entry import MoodEntryRecord

__all__ = [
    "Base",
    "MoodEntryRecord",
]
