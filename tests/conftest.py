import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from stockpost.core.errors import FetchError, PublishError
from stockpost.destinations.base import PostResult
from stockpost.schemas.snapshot import parse_stock_payload
from stockpost.services.composer import ReportComposer
from stockpost.services.cycle import StockCycle
from stockpost.services.storage import FileFingerprintStore


MANILA = ZoneInfo("Asia/Manila")

STOCK_A = {
    "data": {
        "updatedAt": "2026-10-19T04:00:00Z",
        "gear": {
            "items": [
                {"name": "Trowel", "quantity": 3, "emoji": "🛠️"},
                {"name": "Godly Sprinkler", "quantity": 1},
            ],
            "countdown": "04m 12s",
            "updatedAt": "2026-10-19T04:00:00Z",
        },
        "seed": {
            "items": [
                {"name": "Carrot", "quantity": 10},
                {"name": "Ember Lily", "quantity": 1},
            ],
            "countdown": "04m 12s",
        },
        "egg": {"items": [{"name": "Bug Egg", "quantity": 2}], "countdown": "29m 40s"},
        "travelingmerchant": {"status": "leaved", "items": []},
    }
}


def stock_payload(**overrides) -> dict:
    """Deep-ish copy of STOCK_A with top-level category overrides."""
    data = {k: (dict(v) if isinstance(v, dict) else v) for k, v in STOCK_A["data"].items()}
    for cat in ("gear", "seed", "egg"):
        data[cat]["items"] = [dict(i) for i in data[cat]["items"]]
    data.update(overrides)
    return {"data": data}


class FakeFetcher:
    source = "fake"

    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def fetch(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        payload = self.payloads.pop(0) if len(self.payloads) > 1 else self.payloads[0]
        if isinstance(payload, Exception):
            raise payload
        return parse_stock_payload(payload)


class FakePublisher:
    destination = "fake"

    def __init__(self, *, fail: bool = False, skip: bool = False):
        self.fail = fail
        self.skip = skip
        self.messages: list[str] = []

    async def publish(self, message: str) -> PostResult:
        self.messages.append(message)
        if self.fail:
            raise PublishError("rate limited", error_code="HTTP_429", retryable=True, attempts=3)
        if self.skip:
            return PostResult(ok=False, skipped=True)
        n = len(self.messages)
        return PostResult(ok=True, post_id=f"p_{n}", url=f"https://facebook.com/p_{n}", media_kind="image", attempts=1)


@pytest.fixture
def store(tmp_path):
    return FileFingerprintStore(str(tmp_path / "last_stock_hash.txt"))


@pytest.fixture
def weekday_noon():
    # a Monday, outside the update countdown and the weekly reset window
    return datetime(2026, 10, 19, 12, 3, 27, 500000, tzinfo=MANILA)


@pytest.fixture
def make_cycle(store, weekday_noon):
    def _make(fetcher, publisher, **kw):
        return StockCycle(
            fetcher=fetcher,
            publisher=publisher,
            store=store,
            composer=ReportComposer(),
            clock=kw.pop("clock", lambda: weekday_noon),
            **kw,
        )
    return _make


@pytest.fixture
def fetch_error():
    return FetchError("connection refused", source="fake", error_code="REQUEST_ERROR")


@pytest.fixture
def payload():
    return stock_payload


@pytest.fixture
def fetcher_cls():
    return FakeFetcher


@pytest.fixture
def publisher_cls():
    return FakePublisher
