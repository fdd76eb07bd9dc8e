import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rewind.config import Settings
from rewind.database import Base
from rewind.listeners import VersionTrackingListener
from rewind.services.event_service import VersionEvents
from rewind.services.lock_service import InProcessLockProvider
from rewind.services.recorder_service import VersionRecorder
from rewind.services.rewind_service import RewindManager
import rewind.models  # noqa: F401 - registers RewindVersion
import tests.models  # noqa: F401 - registers test entities

TEST_DB_URL = "sqlite:///./test_rewind.db"

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(DATABASE_URL=TEST_DB_URL)


@pytest.fixture
def events():
    return VersionEvents()


@pytest.fixture
def recorder(settings, events):
    return VersionRecorder(settings, locks=InProcessLockProvider(), events=events)


@pytest.fixture
def listener(recorder):
    listener = VersionTrackingListener(recorder).install(TestingSession)
    yield listener
    listener.remove(TestingSession)


@pytest.fixture
def db(listener):
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def manager(settings, recorder):
    return RewindManager(settings, recorder=recorder)


@pytest.fixture
def store(recorder):
    return recorder.store


def versions_of(db, store, entity):
    entity_type, entity_id = entity.version_identity()
    db.expire_all()
    return store.all_for_entity(db, entity_type=entity_type, entity_id=entity_id)


@pytest.fixture
def session_factory(listener):
    return TestingSession
