from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./mood_analytics.db"
    redis_url: str = "redis://redis:6379/0"

    # Backends: "memory" | "sqlalchemy" for entries, "local" | "redis" for events
    entry_store_backend: str = "memory"
    event_backend: str = "local"
    event_channel_prefix: str = "mood"

    # Regenerate insights in the background after each append
    analyze_on_write: bool = True

    # Zone used for day-of-week / time-of-day bucketing
    local_timezone: str = "UTC"

    # Upper bound on history loaded for pattern and correlation analysis
    analysis_max_entries: int = 1000

    # Trend lookback windows (days)
    trend_daily_days: int = 7
    trend_weekly_days: int = 28
    trend_monthly_days: int = 90

    # Trend thresholds
    trend_min_entries: int = 3
    trend_slope_threshold: float = 0.1
    significant_event_z: float = 1.5
    significant_event_min_entries: int = 5

    # Pattern thresholds
    pattern_min_entries: int = 14  # two weeks of data
    pattern_min_strength: float = 0.1
    weekly_min_days: int = 4
    temporal_min_buckets: int = 2
    tag_min_occurrences: int = 3
    tag_min_impact: float = 0.15

    # Correlation thresholds
    correlation_min_pairs: int = 3
    correlation_strong_threshold: float = 0.6

    # Insight thresholds
    insight_min_entries: int = 3
    insight_trend_confidence: float = 0.7
    insight_change_high: float = 20.0
    insight_change_medium: float = 10.0
    insight_pattern_strength: float = 0.3
    insight_pattern_strength_medium: float = 0.6
    insight_correlation_significance: float = 0.5
    insight_correlation_significance_high: float = 0.8
    recent_window_entries: int = 7
    recent_min_entries: int = 3
    low_mood_threshold: float = 4.0
    positive_mood_threshold: float = 7.0
    alert_lifetime_days: int = 7

    # Export
    export_common_tags_limit: int = 5
    export_significant_correlation: float = 0.6

    class Config:
        env_file = ".env"
        env_prefix = "MOOD_"


settings = Settings()
