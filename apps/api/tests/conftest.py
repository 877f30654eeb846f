"""
Pytest configuration and fixtures

Tests never need Postgres or Redis: the workout log store is an in-memory
SQLite database, and the cache is unreachable (graceful degradation) unless a
test patches it.
"""
import pytest
import sys
import os
from datetime import datetime, timezone

# Must be set before core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
import models  # noqa: F401  (registers tables on Base.metadata)


# Wednesday; its week starts Monday 2024-06-10
AS_OF = datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh in-memory workout log store per test.

    Nothing persists between tests.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()
