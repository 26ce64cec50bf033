import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
from starlette.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Base SQLite temporal para toda la corrida; debe configurarse antes de importar la app
_TMP_DIR = tempfile.mkdtemp(prefix="pytest_slots_")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["ENV"] = "test"
os.environ.pop("PORT", None)
os.environ.pop("RAILWAY_ENVIRONMENT", None)
os.environ["VOTES_PER_ROLL"] = "1"

from src.main import app as real_app  # noqa: E402  (import after env setup)
from src.database import Base, SessionLocal, engine  # noqa: E402
from src.services.vote_source import get_vote_source  # noqa: E402


class FakeVoteSource:
    """Fuente de votos en memoria con la misma interfaz que GoogleSheetsVoteSource."""

    def __init__(self, votes=0, timestamps=None):
        self.votes = votes
        self._timestamps = list(timestamps or [])
        self.error = None
        self.calls = 0

    def count(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.votes

    def timestamps(self):
        if self.error:
            raise self.error
        return sorted(self._timestamps)


@pytest.fixture(scope="session", autouse=True)
def _cleanup_tmp_dir():
    yield
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def fresh_tables():
    """Tablas vacías en cada test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def _votes_per_roll(monkeypatch):
    monkeypatch.setenv("VOTES_PER_ROLL", "1")


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vote_source():
    return FakeVoteSource(votes=10)


@pytest.fixture
def client(vote_source):
    real_app.dependency_overrides[get_vote_source] = lambda: vote_source
    try:
        with TestClient(real_app) as c:
            yield c
    finally:
        real_app.dependency_overrides.pop(get_vote_source, None)
