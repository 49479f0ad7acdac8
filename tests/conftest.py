"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from codememory.review.catalog import InMemoryCatalog  # noqa: E402
from codememory.review.service import ReviewService  # noqa: E402
from codememory.scheduling.parameters import SchedulerParameters  # noqa: E402
from codememory.scheduling.scheduler import Scheduler  # noqa: E402
from codememory.store.account import AccountProgressStore  # noqa: E402
from codememory.store.database import (  # noqa: E402
    create_db_engine,
    create_session_factory,
    init_db,
)
from codememory.store.local import LocalProgressStore  # noqa: E402
from codememory.store.router import StoreRouter  # noqa: E402

# Monday morning, far from any UTC midnight
START = datetime(2025, 3, 3, 9, 30, 15, 123456, tzinfo=UTC)

CATALOG = {
    "python-closures": ["closures-001", "closures-002", "closures-003"],
    "python-generators": ["generators-001", "generators-002"],
}


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (service, stores, API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "property: Property-based tests (hypothesis)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)
        elif "property" in path:
            item.add_marker(pytest.mark.property)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, instant: datetime) -> datetime:
        self.now = instant
        return self.now


class RecordingEventSink:
    """Keeps emitted events in memory."""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.event_type == event_type]


class FailingEventSink:
    """Sink that always raises."""

    def emit(self, event):
        raise RuntimeError("analytics backend unavailable")


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return START


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler():
    return Scheduler()


@pytest.fixture
def unfuzzed_scheduler():
    return Scheduler(SchedulerParameters(enable_fuzz=False))


@pytest.fixture
def catalog():
    return InMemoryCatalog(CATALOG)


@pytest.fixture
def local_store(tmp_path):
    store = LocalProgressStore(tmp_path / "state.db")
    yield store
    store.close()


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'accounts.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def account_store(session_factory):
    return AccountProgressStore("learner-1", session_factory)


@pytest.fixture(params=["local", "account"])
def store(request, local_store, account_store):
    """Run a test once against each backend."""
    return local_store if request.param == "local" else account_store


@pytest.fixture
def router(tmp_path, session_factory):
    router = StoreRouter(session_factory=session_factory, local_path=tmp_path / "local.db")
    yield router
    router.close()


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def failing_sink():
    return FailingEventSink()


@pytest.fixture
def service(router, catalog, clock, events):
    return ReviewService(router=router, catalog=catalog, clock=clock, sinks=[events])


@pytest.fixture(params=["anonymous", "learner-1"], ids=["local", "account"])
def learner_id(request):
    """Run a test once against each backend."""
    return request.param
