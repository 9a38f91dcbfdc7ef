from __future__ import annotations
import logging

from pydantic import ValidationError

from stockpost.schemas.snapshot import Prediction, Weather, parse_predictions_payload, parse_weather_payload
from stockpost.services.http_client import StockHttpClient


log = logging.getLogger(__name__)


class WeatherFetcher:
    """Current weather; any failure degrades to None so the cycle carries on."""

    def __init__(self, *, client: StockHttpClient, url: str, timeout_seconds: float = 10.0):
        self.client = client
        self.url = url
        self.timeout_seconds = timeout_seconds

    async def fetch(self) -> Weather | None:
        result = await self.client.get_json(url=self.url, timeout_seconds=self.timeout_seconds)
        if not result.ok:
            log.warning("weather: API failed: %s", result.error_message)
            return None
        try:
            return parse_weather_payload(result.detail)
        except ValidationError as e:
            log.warning("weather: bad payload: %s", e)
            return None


class PredictionsFetcher:
    """Upcoming restock predictions (beta upstream); None on any failure."""

    def __init__(self, *, client: StockHttpClient, url: str, query: str = "seed|gear|egg", timeout_seconds: float = 10.0):
        self.client = client
        self.url = url
        self.query = query
        self.timeout_seconds = timeout_seconds

    async def fetch(self) -> dict[str, list[Prediction]] | None:
        result = await self.client.get_json(url=self.url, params={"q": self.query}, timeout_seconds=self.timeout_seconds)
        if not result.ok:
            log.warning("predictions: API failed: %s", result.error_message)
            return None
        try:
            return parse_predictions_payload(result.detail)
        except ValidationError as e:
            log.warning("predictions: bad payload: %s", e)
            return None
