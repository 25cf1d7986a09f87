import pytest

from optionstrike.db.cache_store import CacheStore
from optionstrike.db.database import Base, create_db_engine, create_session_factory, init_db
from optionstrike.db.repository import RecommendationRepository
from tests.fakes import FixedClock, RecordingSleep

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture
def db_engine():
    """Create test database."""
    engine = create_db_engine(TEST_DATABASE_URL)
    init_db(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def cache(session_factory, clock):
    return CacheStore(session_factory, clock=clock)


@pytest.fixture
def repository(session_factory):
    return RecommendationRepository(session_factory)
