"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every test gets its own in-memory SQLite database.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings  # noqa: E402
from src.db.database import make_session_factory, session_scope  # noqa: E402
from src.quiz.catalog_loader import CatalogLoader  # noqa: E402
from src.quiz.service import PracticeService  # noqa: E402
from tests.factories import FakeClock, make_paper_payload  # noqa: E402

PAPER_COUNT = 31


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (API over a test database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def session_factory():
    """Session factory over an empty in-memory database with all tables."""
    return make_session_factory("sqlite://", create_tables=True)


@pytest.fixture
def seeded_factory(session_factory):
    """Session factory whose catalog holds Paper1..Paper31."""
    with session_scope(session_factory) as db:
        loader = CatalogLoader(db, questions_per_paper=100)
        for index in range(1, PAPER_COUNT + 1):
            loader.import_paper(make_paper_payload(f"Paper{index}"))
    return session_factory


@pytest.fixture
def db(seeded_factory):
    """A plain session on the seeded database; committed work is visible to other sessions."""
    session = seeded_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(seeded_factory, settings, clock):
    """PracticeService over the seeded database with a fake clock and no real sleeping."""
    return PracticeService(seeded_factory, settings=settings, clock=clock, sleep=lambda _: None)


@pytest.fixture
def sample_answers():
    """Provide the worked example: two answers on Paper7."""
    return {1: "B", 2: "A"}
