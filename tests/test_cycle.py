from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from stockpost.core.errors import PersistenceError
from stockpost.schemas.snapshot import Weather, parse_stock_payload
from stockpost.services.cycle import CycleStatus
from stockpost.services.feed_fingerprint import compute_snapshot_fingerprint


MANILA = ZoneInfo("Asia/Manila")


@pytest.mark.asyncio
async def test_post_then_dedupe_then_post_on_change(make_cycle, store, payload, fetcher_cls, publisher_cls):
    a = payload()
    b = payload()
    b["data"]["seed"]["items"][0]["quantity"] = 4
    fetcher = fetcher_cls(a, a, b)
    publisher = publisher_cls()
    cycle = make_cycle(fetcher, publisher)

    h1 = compute_snapshot_fingerprint(parse_stock_payload(a))
    h2 = compute_snapshot_fingerprint(parse_stock_payload(b))
    assert h1 != h2

    first = await cycle.run_once()
    assert first.status == CycleStatus.POSTED
    assert store.load() == h1
    assert len(publisher.messages) == 1

    second = await cycle.run_once()
    assert second.status == CycleStatus.UNCHANGED
    assert len(publisher.messages) == 1
    assert store.load() == h1

    third = await cycle.run_once()
    assert third.status == CycleStatus.POSTED
    assert len(publisher.messages) == 2
    assert store.load() == h2


@pytest.mark.asyncio
async def test_publish_failure_leaves_store_untouched(make_cycle, store, payload, fetcher_cls, publisher_cls):
    store.save("previous")
    cycle = make_cycle(fetcher_cls(payload()), publisher_cls(fail=True))

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.PUBLISH_FAILED
    assert store.load() == "previous"

    # same content is tried again next cycle
    retry = await cycle.run_once()
    assert retry.status == CycleStatus.PUBLISH_FAILED


@pytest.mark.asyncio
async def test_skipped_post_does_not_advance_store(make_cycle, store, payload, fetcher_cls, publisher_cls):
    cycle = make_cycle(fetcher_cls(payload()), publisher_cls(skip=True))

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.SKIPPED_NO_MEDIA
    assert store.load() == ""


@pytest.mark.asyncio
async def test_fetch_failure_skips_cycle(make_cycle, store, fetcher_cls, publisher_cls, fetch_error):
    publisher = publisher_cls()
    cycle = make_cycle(fetcher_cls(fetch_error), publisher)

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.FETCH_FAILED
    assert outcome.snapshot is None
    assert publisher.messages == []
    assert store.load() == ""


@pytest.mark.asyncio
async def test_persist_failure_is_reported_not_raised(make_cycle, store, payload, fetcher_cls, publisher_cls, monkeypatch):
    def broken_save(fingerprint, feed=None):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "save", broken_save)
    cycle = make_cycle(fetcher_cls(payload()), publisher_cls())

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.PERSIST_FAILED
    assert outcome.post.ok is True


@pytest.mark.asyncio
async def test_weather_and_predictions_join_the_snapshot(make_cycle, store, payload, fetcher_cls, publisher_cls):
    class Weathery:
        async def fetch(self):
            return Weather(description="Thunderstorm", crop_bonuses="Shocked")

    class Broken:
        async def fetch(self):
            raise RuntimeError("predictions down")

    publisher = publisher_cls()
    cycle = make_cycle(fetcher_cls(payload()), publisher, weather=Weathery(), predictions=Broken())

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.POSTED
    assert outcome.snapshot.weather.description == "Thunderstorm"
    assert outcome.snapshot.predictions is None
    assert "☁️ Weather: Thunderstorm" in publisher.messages[0]


@pytest.mark.asyncio
async def test_weather_change_alone_triggers_a_post(make_cycle, store, payload, fetcher_cls, publisher_cls):
    class Rotating:
        def __init__(self):
            self.values = ["Rain", "Rain", "Frost"]

        async def fetch(self):
            return Weather(description=self.values.pop(0))

    publisher = publisher_cls()
    cycle = make_cycle(fetcher_cls(payload()), publisher, weather=Rotating())

    statuses = [(await cycle.run_once()).status for _ in range(3)]

    assert statuses == [CycleStatus.POSTED, CycleStatus.UNCHANGED, CycleStatus.POSTED]


@pytest.mark.asyncio
async def test_sunday_midnight_clears_fingerprint_so_week_starts_fresh(make_cycle, store, payload, fetcher_cls, publisher_cls):
    snap_hash = compute_snapshot_fingerprint(parse_stock_payload(payload()))
    store.save(snap_hash)
    sunday = datetime(2026, 10, 25, 0, 2, tzinfo=MANILA)
    publisher = publisher_cls()
    cycle = make_cycle(fetcher_cls(payload()), publisher, clock=lambda: sunday)

    outcome = await cycle.run_once()

    assert outcome.status == CycleStatus.POSTED
    assert store.load() == snap_hash


@pytest.mark.asyncio
async def test_weather_outage_does_not_repost_unchanged_stock(make_cycle, store, payload, fetcher_cls, publisher_cls):
    class Flaky:
        def __init__(self):
            self.values = [Weather(description="Rain"), None, Weather(description="Rain")]

        async def fetch(self):
            return self.values.pop(0)

    publisher = publisher_cls()
    cycle = make_cycle(fetcher_cls(payload()), publisher, weather=Flaky())

    outcomes = [await cycle.run_once() for _ in range(3)]

    assert [o.status for o in outcomes] == [CycleStatus.POSTED, CycleStatus.UNCHANGED, CycleStatus.UNCHANGED]
    assert len(publisher.messages) == 1
    assert outcomes[1].snapshot.weather.description == "Rain"


@pytest.mark.asyncio
async def test_outcome_records_when_the_snapshot_was_fetched(make_cycle, payload, fetcher_cls, publisher_cls, weekday_noon):
    outcome = await make_cycle(fetcher_cls(payload()), publisher_cls()).run_once()

    assert outcome.fetched_at == weekday_noon
