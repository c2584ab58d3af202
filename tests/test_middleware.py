"""
Tests for request-rate ceiling and response headers.
"""
from fastapi.testclient import TestClient

from backend.mongo_admin.main import create_app
from backend.mongo_admin.middleware import SECURITY_HEADERS, FixedWindowLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_limiter_allows_up_to_max_then_blocks():
    clock = FakeClock()
    limiter = FixedWindowLimiter(3, 60, clock=clock)
    assert [limiter.hit("a") for _ in range(3)] == [None, None, None]
    clock.now = 10
    assert limiter.hit("a") == 50
    # other clients have their own window
    assert limiter.hit("b") is None


def test_limiter_window_resets():
    clock = FakeClock()
    limiter = FixedWindowLimiter(1, 60, clock=clock)
    assert limiter.hit("a") is None
    assert limiter.hit("a") is not None
    clock.now = 61
    assert limiter.hit("a") is None


def test_api_requests_over_limit_get_429(settings, conn_mgr):
    settings.rate_limit_max = 2
    app = create_app(settings, conn_mgr)
    with TestClient(app) as c:
        assert c.get("/api/health").status_code == 200
        assert c.get("/api/health").status_code == 200
        res = c.get("/api/health")
    assert res.status_code == 429
    assert res.json() == {"error": "Too many requests, please try again later."}
    assert "Retry-After" in res.headers


def test_rate_limit_disabled_with_zero(settings, conn_mgr):
    settings.rate_limit_max = 0
    app = create_app(settings, conn_mgr)
    with TestClient(app) as c:
        statuses = {c.get("/api/health").status_code for _ in range(5)}
    assert statuses == {200}


def test_security_headers_present(client):
    res = client.get("/api/health")
    for name, value in SECURITY_HEADERS.items():
        assert res.headers[name] == value


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.json() == {"error": "Not Found"}


def test_static_dir_is_served_when_present(settings, conn_mgr, tmp_path):
    static = tmp_path / "public"
    static.mkdir()
    (static / "index.html").write_text("<h1>console</h1>", "utf-8")
    settings.static_dir = str(static)
    app = create_app(settings, conn_mgr)
    with TestClient(app) as c:
        assert "console" in c.get("/").text
        assert c.get("/api/health").json()["status"] == "ok"
