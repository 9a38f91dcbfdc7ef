from __future__ import annotations
import asyncio
import json
import logging

import aiohttp
from aiohttp import WSMsgType
from pydantic import ValidationError

from stockpost.core.errors import FetchError
from stockpost.schemas.snapshot import Snapshot, parse_stock_payload


log = logging.getLogger(__name__)


class WebSocketStockFetcher:
    """
    One request/response exchange per cycle.

    Connect, send the text command (e.g. "getAllStock"), wait for exactly one
    TEXT frame, close. Nothing is cached between cycles, so every snapshot is
    as fresh as the moment it was fetched.
    """

    source = "websocket"

    def __init__(
        self,
        *,
        url: str,
        command: str = "getAllStock",
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = url
        self.command = command
        self.timeout_seconds = timeout_seconds
        self._session = session

    async def fetch(self) -> Snapshot:
        try:
            raw = await asyncio.wait_for(self._exchange(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FetchError(f"no reply within {self.timeout_seconds}s", source=self.source, error_code="TIMEOUT") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"websocket error: {e}", source=self.source, error_code="REQUEST_ERROR") from e

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            log.warning("ws: bad json :: %s", raw[:200])
            raise FetchError("websocket reply is not JSON", source=self.source, error_code="MALFORMED") from e

        try:
            return parse_stock_payload(payload)
        except ValidationError as e:
            raise FetchError(f"stock payload invalid: {e.error_count()} errors", source=self.source, error_code="MALFORMED") from e
        except ValueError as e:
            raise FetchError(f"not a stock document: {e}", source=self.source, error_code="MALFORMED") from e

    async def _exchange(self) -> str:
        if self._session is not None:
            return await self._exchange_with(self._session)
        async with aiohttp.ClientSession() as session:
            return await self._exchange_with(session)

    async def _exchange_with(self, session: aiohttp.ClientSession) -> str:
        async with session.ws_connect(self.url) as ws:
            await ws.send_str(self.command)
            msg = await ws.receive()
            if msg.type == WSMsgType.TEXT:
                return msg.data
            if msg.type == WSMsgType.BINARY:
                return msg.data.decode("utf-8", errors="replace")
            raise FetchError(
                f"websocket closed before reply (type={msg.type.name})",
                source=self.source,
                error_code="NO_REPLY",
            )
