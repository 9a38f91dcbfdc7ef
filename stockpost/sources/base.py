from __future__ import annotations

from typing import Protocol, runtime_checkable

from stockpost.schemas.snapshot import Snapshot


@runtime_checkable
class SnapshotFetcher(Protocol):
    """
    A fetcher retrieves one fresh Snapshot per call.

    Implementations raise FetchError on timeout, connection failure or a
    payload that cannot be parsed; they never return partial garbage.
    """

    source: str

    async def fetch(self) -> Snapshot:
        ...
