import mongomock
import pytest
from fastapi.testclient import TestClient

from backend.mongo_admin.config import Settings
from backend.mongo_admin.main import create_app
from backend.mongo_admin.services.mongo import ConnectionManager

TEST_URL = "mongodb://localhost:27017/console_test"


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def conn_mgr(mongo_client):
    """Manager whose client factory hands out the shared in-memory client."""
    return ConnectionManager(client_factory=lambda url, **kwargs: mongo_client)


@pytest.fixture
def connected(conn_mgr):
    conn_mgr.connect(TEST_URL)
    return conn_mgr


@pytest.fixture
def db(connected):
    return connected.get_database()


@pytest.fixture
def settings(monkeypatch, tmp_path):
    for name in ("MONGODB_URI", "MONGODB_DATABASE", "RATE_LIMIT_MAX", "SEARCH_STRATEGY", "DEBUG", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "no-static"))
    return Settings()


@pytest.fixture
def client(settings, conn_mgr):
    app = create_app(settings, conn_mgr)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api(client, connected):
    """HTTP client with a live (mocked) connection."""
    return client
