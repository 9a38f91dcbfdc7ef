from __future__ import annotations
from pydantic import ValidationError

from stockpost.core.errors import FetchError
from stockpost.schemas.snapshot import Snapshot, parse_stock_payload
from stockpost.services.http_client import StockHttpClient


class HttpStockFetcher:
    """Polls a JSON endpoint (`{"data": {...categories}}`) once per cycle."""

    source = "http"

    def __init__(self, *, client: StockHttpClient, url: str, timeout_seconds: float = 10.0):
        self.client = client
        self.url = url
        self.timeout_seconds = timeout_seconds

    async def fetch(self) -> Snapshot:
        result = await self.client.get_json(url=self.url, timeout_seconds=self.timeout_seconds)
        if not result.ok:
            raise FetchError(
                f"stock GET failed: {result.error_message}",
                source=self.source,
                error_code=result.error_code or "FETCH_FAILED",
            )
        if "raw" in result.detail:
            raise FetchError("stock GET returned a non-JSON body", source=self.source, error_code="MALFORMED")

        try:
            return parse_stock_payload(result.detail)
        except ValidationError as e:
            raise FetchError(f"stock payload invalid: {e.error_count()} errors", source=self.source, error_code="MALFORMED") from e
        except ValueError as e:
            raise FetchError(f"not a stock document: {e}", source=self.source, error_code="MALFORMED") from e
