from __future__ import annotations

from stockpost.core.config import Settings
from stockpost.core.errors import ConfigError
from stockpost.services.http_client import StockHttpClient
from stockpost.sources.base import SnapshotFetcher
from stockpost.sources.http_source import HttpStockFetcher
from stockpost.sources.websocket_source import WebSocketStockFetcher


def build_stock_fetcher(settings: Settings, *, client: StockHttpClient) -> SnapshotFetcher:
    kind = settings.stock_source
    if kind == "websocket":
        if not settings.ws_url:
            raise ConfigError("WS_URL is required when STOCK_SOURCE=websocket")
        return WebSocketStockFetcher(
            url=settings.ws_url,
            command=settings.ws_command,
            timeout_seconds=settings.fetch_timeout_seconds,
        )
    if kind == "http":
        if not settings.stock_http_url:
            raise ConfigError("STOCK_HTTP_URL is required when STOCK_SOURCE=http")
        return HttpStockFetcher(client=client, url=settings.stock_http_url, timeout_seconds=settings.fetch_timeout_seconds)
    raise ConfigError(f"Unknown stock source: {kind}")
