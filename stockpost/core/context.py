from __future__ import annotations
import logging
from dataclasses import dataclass

from stockpost.core.config import Settings
from stockpost.core.errors import ConfigError
from stockpost.destinations.base import Publisher
from stockpost.destinations.credentials import PageTokenProvider
from stockpost.destinations.facebook_page import FacebookPagePublisher
from stockpost.services.composer import ReportComposer
from stockpost.services.cycle import StockCycle
from stockpost.services.http_client import StockHttpClient
from stockpost.services.retry import RetryPolicy, linear_backoff
from stockpost.services.scheduler import CycleScheduler
from stockpost.services.storage import FileFingerprintStore
from stockpost.services.tips import DailyTipRotator
from stockpost.sources.auxiliary import PredictionsFetcher, WeatherFetcher
from stockpost.sources.registry import build_stock_fetcher


log = logging.getLogger(__name__)


@dataclass
class RuntimeContext:
    """
    Everything a running poster needs, built once at startup and passed by
    reference. The token cache lives on `tokens`, not in a module global.
    """
    settings: Settings
    http: StockHttpClient
    store: FileFingerprintStore
    publisher: Publisher
    cycle: StockCycle
    scheduler: CycleScheduler

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.http.aclose()


def build_publisher(settings: Settings, *, http: StockHttpClient) -> FacebookPagePublisher:
    if not settings.page_id:
        raise ConfigError("PAGE_ID is required")
    retry = RetryPolicy(
        max_attempts=settings.publish_max_attempts,
        backoff=linear_backoff(settings.publish_backoff_seconds),
    )
    tokens = PageTokenProvider(
        client=http,
        graph_base_url=settings.graph_base_url,
        app_id=settings.app_id,
        app_secret=settings.app_secret,
        short_lived_token=settings.page_access_token,
        long_lived_token=settings.long_page_access_token,
        retry=retry,
    )
    return FacebookPagePublisher(
        client=http,
        tokens=tokens,
        page_id=settings.page_id,
        graph_base_url=settings.graph_base_url,
        video_path=settings.temp_video_path,
        image_path=settings.temp_image_path,
        retry=retry,
    )


def build_context(settings: Settings, *, http: StockHttpClient | None = None) -> RuntimeContext:
    http = http or StockHttpClient(timeout_seconds=settings.fetch_timeout_seconds)
    store = FileFingerprintStore(settings.hash_file, default_feed=settings.feed_name)
    publisher = build_publisher(settings, http=http)

    weather = None
    if settings.weather_api:
        weather = WeatherFetcher(client=http, url=settings.weather_api, timeout_seconds=settings.fetch_timeout_seconds)
    predictions = None
    if settings.predictions_api:
        predictions = PredictionsFetcher(
            client=http,
            url=settings.predictions_api,
            query=settings.predictions_query,
            timeout_seconds=settings.fetch_timeout_seconds,
        )

    cycle = StockCycle(
        fetcher=build_stock_fetcher(settings, client=http),
        publisher=publisher,
        store=store,
        composer=ReportComposer(tip_source=DailyTipRotator(settings.tips_path, settings.tips_cache_path)),
        weather=weather,
        predictions=predictions,
        feed=settings.feed_name,
        tz=settings.timezone,
    )
    scheduler = CycleScheduler(
        cycle.run_once,
        tz=settings.timezone,
        interval_minutes=settings.check_interval_minutes,
        mode=settings.schedule_mode,
        safety_margin_seconds=settings.safety_margin_seconds,
        min_delay_seconds=settings.min_delay_seconds,
    )
    log.info(
        "context: feed=%s source=%s schedule=%s every %dm (%s)",
        settings.feed_name, settings.stock_source, settings.schedule_mode,
        settings.check_interval_minutes, settings.timezone,
    )
    return RuntimeContext(
        settings=settings,
        http=http,
        store=store,
        publisher=publisher,
        cycle=cycle,
        scheduler=scheduler,
    )
