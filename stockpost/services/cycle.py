from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable
from zoneinfo import ZoneInfo

from opentelemetry import trace

from stockpost.core.errors import FetchError, PersistenceError, PublishError
from stockpost.destinations.base import PostResult, Publisher
from stockpost.schemas.snapshot import Prediction, Snapshot, Weather
from stockpost.services.change_detector import ChangeDetector
from stockpost.services.composer import ReportComposer
from stockpost.services.storage import FileFingerprintStore
from stockpost.services.update_window import is_weekly_reset_window
from stockpost.sources.auxiliary import PredictionsFetcher, WeatherFetcher
from stockpost.sources.base import SnapshotFetcher


log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CycleStatus(str, Enum):
    POSTED = "posted"
    UNCHANGED = "unchanged"
    SKIPPED_NO_MEDIA = "skipped_no_media"
    FETCH_FAILED = "fetch_failed"
    PUBLISH_FAILED = "publish_failed"
    PERSIST_FAILED = "persist_failed"


@dataclass
class CycleOutcome:
    status: CycleStatus
    feed: str
    fingerprint: str | None = None
    snapshot: Snapshot | None = None
    post: PostResult | None = None
    error: str | None = None
    fetched_at: datetime | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> dict:
        return {
            "status": self.status.value,
            "feed": self.feed,
            "fingerprint": self.fingerprint,
            "post_url": self.post.url if self.post else None,
            "error": self.error,
            "finished_at": self.finished_at.isoformat(),
        }


class StockCycle:
    """
    One fetch -> detect -> compose -> publish -> persist pass for a feed.

    The fingerprint is saved only after the publisher reports a real post;
    fetch, publish and persistence failures end the cycle with a status and
    never raise. A failed weather or predictions read falls back to the last
    good one, so an auxiliary outage alone never changes the fingerprint.
    """

    def __init__(
        self,
        *,
        fetcher: SnapshotFetcher,
        publisher: Publisher,
        store: FileFingerprintStore,
        composer: ReportComposer,
        weather: WeatherFetcher | None = None,
        predictions: PredictionsFetcher | None = None,
        feed: str = "stock",
        tz: str = "Asia/Manila",
        clock: Callable[[], datetime] | None = None,
    ):
        self.fetcher = fetcher
        self.publisher = publisher
        self.store = store
        self.composer = composer
        self.weather = weather
        self.predictions = predictions
        self.feed = feed
        self.tz = ZoneInfo(tz)
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.detector = ChangeDetector(store, feed=feed)
        # last good auxiliary reads, reused when a later read fails
        self._last_weather: Weather | None = None
        self._last_predictions: dict[str, list[Prediction]] | None = None

    async def run_once(self) -> CycleOutcome:
        with tracer.start_as_current_span("stock.cycle") as span:
            span.set_attribute("stock.feed", self.feed)
            outcome = await self._run()
            span.set_attribute("stock.cycle.status", outcome.status.value)
            return outcome

    async def _run(self) -> CycleOutcome:
        now = self.clock()

        if is_weekly_reset_window(now):
            try:
                await self.store.areset(self.feed)
            except PersistenceError as e:
                log.error("cycle: weekly reset failed feed=%s: %s", self.feed, e)

        try:
            snapshot = await self._fetch()
            fetched_at = self.clock()
        except FetchError as e:
            log.warning("cycle: fetch failed feed=%s source=%s code=%s: %s", self.feed, e.source, e.error_code, e)
            return CycleOutcome(status=CycleStatus.FETCH_FAILED, feed=self.feed, error=str(e))

        try:
            change = await self.detector.has_changed(snapshot)
        except PersistenceError as e:
            log.error("cycle: cannot read fingerprint feed=%s: %s", self.feed, e)
            return CycleOutcome(status=CycleStatus.PERSIST_FAILED, feed=self.feed, snapshot=snapshot, fetched_at=fetched_at, error=str(e))

        if not change.changed:
            log.info("cycle: no change feed=%s fingerprint=%s", self.feed, change.fingerprint[:12])
            return CycleOutcome(status=CycleStatus.UNCHANGED, feed=self.feed, fingerprint=change.fingerprint, snapshot=snapshot, fetched_at=fetched_at)

        message = await self.composer.acompose(snapshot, now=now)

        try:
            post = await self.publisher.publish(message)
        except PublishError as e:
            log.error("cycle: publish failed feed=%s code=%s attempts=%d: %s", self.feed, e.error_code, e.attempts, e)
            return CycleOutcome(
                status=CycleStatus.PUBLISH_FAILED,
                feed=self.feed,
                fingerprint=change.fingerprint,
                snapshot=snapshot,
                fetched_at=fetched_at,
                error=str(e),
            )

        if post.skipped:
            return CycleOutcome(
                status=CycleStatus.SKIPPED_NO_MEDIA,
                feed=self.feed,
                fingerprint=change.fingerprint,
                snapshot=snapshot,
                fetched_at=fetched_at,
                post=post,
            )

        try:
            await self.store.asave(change.fingerprint, self.feed)
        except PersistenceError as e:
            log.error("cycle: posted but fingerprint not saved feed=%s: %s", self.feed, e)
            return CycleOutcome(
                status=CycleStatus.PERSIST_FAILED,
                feed=self.feed,
                fingerprint=change.fingerprint,
                snapshot=snapshot,
                fetched_at=fetched_at,
                post=post,
                error=str(e),
            )

        log.info("cycle: posted feed=%s fingerprint=%s url=%s", self.feed, change.fingerprint[:12], post.url)
        return CycleOutcome(
            status=CycleStatus.POSTED,
            feed=self.feed,
            fingerprint=change.fingerprint,
            snapshot=snapshot,
            fetched_at=fetched_at,
            post=post,
        )

    async def _fetch(self) -> Snapshot:
        # independent reads run together; only the stock fetch may fail the cycle
        stock, weather, predictions = await asyncio.gather(
            self.fetcher.fetch(),
            self._optional(self.weather, "weather"),
            self._optional(self.predictions, "predictions"),
            return_exceptions=True,
        )
        if isinstance(stock, BaseException):
            raise stock

        if weather is not None:
            self._last_weather = weather
        elif self.weather is not None and self._last_weather is not None:
            log.info("cycle: weather unavailable, reusing last reading")
            weather = self._last_weather
        if predictions is not None:
            self._last_predictions = predictions
        elif self.predictions is not None and self._last_predictions is not None:
            log.info("cycle: predictions unavailable, reusing last reading")
            predictions = self._last_predictions

        return stock.model_copy(update={"weather": weather, "predictions": predictions})

    async def _optional(self, fetcher, label: str):
        if fetcher is None:
            return None
        try:
            return await fetcher.fetch()
        except Exception:
            log.exception("cycle: %s fetch crashed, continuing without it", label)
            return None
