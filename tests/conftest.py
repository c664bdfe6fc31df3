"""
Shared pytest fixtures for bizdesk tests.

Provides:
- db_engine   – in-memory SQLite engine with all tables created
- client      – FastAPI TestClient on the dev backend, get_db overridden
- make_api    – ApiClient factory talking to the dev backend in-process
                (httpx.ASGITransport)
- sanctum     – scriptable fake backend for interceptor unit tests
                (httpx.MockTransport)
- fake_sleep  – records requested delays instead of waiting
"""

import asyncio
import os

# Keep the dev backend's own engine off the filesystem during tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from src.bizdesk.api import ApiClient  # noqa: E402
from src.bizdesk.backend.auth import _reset_rate_limits  # noqa: E402
from src.bizdesk.backend.database import Base, get_db, init_db, make_engine  # noqa: E402
from src.bizdesk.backend.main import app  # noqa: E402
from src.bizdesk.browser import Browser  # noqa: E402
from src.bizdesk.config import ClientSettings  # noqa: E402
from src.bizdesk.retry import RetryPolicy  # noqa: E402

BASE_URL = "http://testserver"

# Same behaviour as the defaults, without the waiting.
FAST_SETTINGS = ClientSettings(
    base_url=BASE_URL,
    acquire_policy=RetryPolicy(10, 0),
    attach_policy=RetryPolicy(3, 0),
    retry_settle_delay=0,
    redirect_delay=0.01,
    logout_grace=0.05,
)

MUTATING = {"POST", "PUT", "PATCH", "DELETE"}


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class FakeSanctum:
    """
    Minimal Sanctum look-alike.

    - GET /sanctum/csrf-cookie sets ``XSRF-TOKEN=<token>`` (or answers
      ``prime_status`` when that is set).
    - Mutating requests whose X-XSRF-TOKEN differs from ``token`` get a 419.
    - ``script(method, path, status, body)`` queues canned answers, consumed
      in order before the default behaviour applies.
    """

    def __init__(self, token: str = "tok-1") -> None:
        self.token = token
        self.primes = 0
        self.prime_status: int | None = None
        self.prime_gate: asyncio.Event | None = None
        self.requests: list[httpx.Request] = []
        self._scripted: dict[tuple[str, str], list[tuple[int, object]]] = {}

    def script(self, method: str, path: str, status: int, body: object = None) -> None:
        self._scripted.setdefault((method, path), []).append((status, body))

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)  # let concurrent requests interleave
        if request.url.path == "/sanctum/csrf-cookie":
            self.primes += 1
            if self.prime_gate is not None:
                await self.prime_gate.wait()
            if self.prime_status is not None:
                return httpx.Response(self.prime_status)
            return httpx.Response(
                204, headers={"set-cookie": f"XSRF-TOKEN={self.token}; Path=/"}
            )

        self.requests.append(request)
        queue = self._scripted.get((request.method, request.url.path))
        if queue:
            status, body = queue.pop(0)
            return httpx.Response(status, json=body)
        if request.method in MUTATING and request.headers.get("x-xsrf-token") != self.token:
            return httpx.Response(419, json={"message": "CSRF token mismatch."})
        return httpx.Response(200, json={"success": True, "message": "", "data": {}})


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset the in-memory login-attempt counter before every test."""
    _reset_rate_limits()
    yield


@pytest.fixture()
def db_engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def override_db(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestingSession
    app.dependency_overrides.clear()


@pytest.fixture()
def client(override_db):
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture()
def make_api(override_db):
    """Build ApiClients wired to the dev backend. Close them with ``async with``."""

    def _make(path: str = "/dashboard", settings: ClientSettings = FAST_SETTINGS, **kwargs):
        return ApiClient(
            settings,
            browser=Browser(path),
            transport=httpx.ASGITransport(app=app),
            **kwargs,
        )

    return _make


@pytest.fixture()
def sanctum():
    return FakeSanctum()


@pytest.fixture()
def fake_sleep():
    return FakeSleep()


@pytest.fixture()
def make_stub_api(sanctum):
    """Build ApiClients talking to the ``sanctum`` fake."""

    def _make(path: str = "/dashboard", settings: ClientSettings = FAST_SETTINGS, **kwargs):
        return ApiClient(
            settings,
            browser=Browser(path),
            transport=httpx.MockTransport(sanctum.handler),
            **kwargs,
        )

    return _make
