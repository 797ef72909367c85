import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from tests._alembic import alembic_upgrade_head
from tests.fakes.upstream import FakeUpstream

from decision_maker.api.dependencies import build_services
from decision_maker.api.main import create_app
from decision_maker.core.config import get_settings
from decision_maker.db.session import configure_engine, dispose_engine
from decision_maker.integrations.http import set_transport
from decision_maker.services.session import SessionState
from decision_maker.storage.kv import MemoryStore

# Every key the service reads; blanked so a developer's .env never leaks in.
_SETTINGS_ENV = (
    "DATABASE_URL_ASYNC",
    "DATABASE_URL_SYNC",
    "TICKETMASTER_API_KEY",
    "EVENTBRITE_API_TOKEN",
    "SPOTIFY_CLIENT_ID",
    "SPOONACULAR_KEY",
    "API_NINJAS_KEY",
    "YELP_API_KEY",
    "TMDB_API_KEY",
    "TMDB_PROXY_ENDPOINT",
)


@pytest.fixture(autouse=True)
def settings_env(monkeypatch, tmp_path):
    for name in _SETTINGS_ENV:
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "storage"))
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def configure(settings_env):
    """Set settings env vars for one test: ``configure(TMDB_API_KEY="k")``."""

    def apply(**values: str):
        for name, value in values.items():
            settings_env.setenv(name, value)
        get_settings.cache_clear()
        return get_settings()

    return apply


@pytest.fixture(autouse=True)
def upstream():
    # no test ever reaches the real network
    fake = FakeUpstream()
    set_transport(fake.transport())
    yield fake
    set_transport(None)


@pytest_asyncio.fixture()
async def database(tmp_path):
    path = tmp_path / "test.db"
    alembic_upgrade_head(f"sqlite:///{path}")
    factory = configure_engine(f"sqlite+aiosqlite:///{path}")
    try:
        yield factory
    finally:
        await dispose_engine()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def session_state(store):
    return SessionState("test-session", store)


@pytest.fixture
def services():
    return build_services(persist=False)


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as c:
        yield c
