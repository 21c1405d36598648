"""SQLAlchemy engine, session factory and declarative base."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from mood_analytics.config import settings

Base = declarative_base()


def make_session_factory(database_url: Optional[str] = None, **engine_kwargs) -> sessionmaker:
    """
    Build a session factory for the given database URL.

    Tables are created on first use; the mood schema is small enough that
    migrations are not tracked separately.
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, **engine_kwargs)

    # Register ORM models on Base before creating tables
    import mood_analytics.models  # noqa: F401

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)
