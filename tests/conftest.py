import pytest
from fastapi.testclient import TestClient

from config import settings
from database import get_db_connection, get_session_factory, init_db
from record_store import RecordStore
from storage import MemStorage, DatabaseStorage


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mem_storage():
    return MemStorage(RecordStore())


@pytest.fixture
def db_storage():
    """DatabaseStorage on a throwaway in-memory SQLite database."""
    engine = get_db_connection("sqlite://")
    init_db(engine)
    yield DatabaseStorage(get_session_factory(engine))
    engine.dispose()


@pytest.fixture(params=["memory", "database"])
def storage(request):
    """Run a test against both storage backends."""
    if request.param == "memory":
        return request.getfixturevalue("mem_storage")
    return request.getfixturevalue("db_storage")


@pytest.fixture
def client(monkeypatch):
    """Test client with a fresh, seeded in-memory store."""
    monkeypatch.setattr(settings, "DATABASE_URL", "")
    monkeypatch.setattr(settings, "SEED_ON_STARTUP", True)
    from main import app

    with TestClient(app) as test_client:
        yield test_client
