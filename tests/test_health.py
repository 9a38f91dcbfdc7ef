import asyncio

import httpx
import pytest

from stockpost.core.config import Settings
from stockpost.core.context import RuntimeContext
from stockpost.main import create_app
from stockpost.services.http_client import StockHttpClient
from stockpost.services.scheduler import CycleScheduler


@pytest.fixture
def fake_fetcher(payload, fetcher_cls):
    return fetcher_cls(payload())


@pytest.fixture
def runtime(tmp_path, store, make_cycle, fake_fetcher, publisher_cls):
    (tmp_path / "doc.html").write_text("<h1>docs</h1>", encoding="utf-8")
    settings = Settings(_env_file=None, docs_dir=str(tmp_path), hash_file=str(store.path))
    publisher = publisher_cls()
    cycle = make_cycle(fake_fetcher, publisher)
    return RuntimeContext(
        settings=settings,
        http=StockHttpClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
        store=store,
        publisher=publisher,
        cycle=cycle,
        scheduler=CycleScheduler(cycle.run_once),
    )


@pytest.fixture
async def client(runtime):
    app = create_app(context=runtime, start_scheduler=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["scheduler_state"] == "idle"
    assert body["last_fingerprint"] is None
    assert body["cycle_in_flight"] is False


@pytest.mark.asyncio
async def test_trigger_runs_one_cycle_and_health_reflects_it(client, store):
    r = await client.post("/v1/cycles:trigger")
    assert r.status_code == 200, r.text
    out = r.json()
    assert out["started"] is True
    assert out["outcome"]["status"] == "posted"

    r = await client.get("/v1/health")
    body = r.json()
    assert body["last_fingerprint"] == store.load()
    assert body["cycles_run"] == 1
    assert body["last_cycle"]["status"] == "posted"

    r = await client.post("/v1/cycles:trigger")
    assert r.json()["outcome"]["status"] == "unchanged"


@pytest.mark.asyncio
async def test_trigger_while_in_flight_is_rejected(client, runtime, fake_fetcher):
    fake_fetcher.gate = asyncio.Event()
    first = asyncio.create_task(client.post("/v1/cycles:trigger"))
    for _ in range(50):
        if runtime.scheduler.busy:
            break
        await asyncio.sleep(0.01)

    r = await client.post("/v1/cycles:trigger")
    assert r.status_code == 409

    fake_fetcher.gate.set()
    done = await first
    assert done.json()["started"] is True
    assert fake_fetcher.calls == 1


@pytest.mark.asyncio
async def test_root_redirects_to_doc(client):
    r = await client.get("/")
    assert r.status_code in (302, 307)
    assert r.headers["location"] == "/doc"

    r = await client.get("/doc")
    assert r.status_code == 200
    assert "docs" in r.text
