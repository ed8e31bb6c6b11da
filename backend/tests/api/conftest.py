"""API test fixtures — booted app on a file-backed SQLite database + httpx client.

Invariants:
    - Every test gets a fresh database file and a fresh app (cache, sessions, pipeline)
    - The boot continuation runs exactly as in production, minus the lifespan
      (ASGITransport does not send lifespan events)

Design Decisions:
    - File-backed SQLite under tmp_path instead of :memory: so every pooled connection
      sees the same tables
    - DB_URI / DATABASE_URL removed from the environment so Settings uses the test URL
"""

import pytest
from httpx import ASGITransport, AsyncClient

from mernapp.config import Settings
from mernapp.infrastructure.database import Datastore
from mernapp.main import activate_pipeline, create_app

ADMIN_TOKEN = "secret"


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.delenv("DB_URI", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    static = tmp_path / "public"
    static.mkdir()
    (static / "hello.txt").write_text("hi")
    (static / "big.txt").write_text("mernapp " * 1000)
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/api.db",
        static_dir=str(static),
        temp_dir=str(tmp_path / "temp"),
        admin_token=ADMIN_TOKEN,
        log_format="text",
    )


@pytest.fixture
async def datastore(settings):
    store = Datastore(settings.database_url)
    yield store
    await store.dispose()


@pytest.fixture
async def app(settings, datastore):
    app = create_app(settings)
    await datastore.connect()
    app.state.datastore = datastore
    await activate_pipeline(app, datastore)
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


async def create_item(client: AsyncClient, name: str = "widget", price: float = 9.5) -> dict:
    response = await client.post("/api/items", json={"name": name, "price": price})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def admin(token: str = ADMIN_TOKEN) -> dict[str, str]:
    return {"X-Admin-Token": token}
