from __future__ import annotations
from dataclasses import dataclass

from stockpost.schemas.snapshot import Snapshot
from stockpost.services.feed_fingerprint import compute_snapshot_fingerprint
from stockpost.services.storage import FileFingerprintStore


@dataclass(frozen=True)
class ChangeResult:
    changed: bool
    fingerprint: str
    previous: str


class ChangeDetector:
    """
    Compares a snapshot's fingerprint with the stored one for a feed.

    Never writes: the caller saves the new fingerprint after a successful post.
    """

    def __init__(self, store: FileFingerprintStore, *, feed: str | None = None):
        self.store = store
        self.feed = feed

    async def has_changed(self, snapshot: Snapshot) -> ChangeResult:
        fingerprint = compute_snapshot_fingerprint(snapshot)
        previous = await self.store.aload(self.feed)
        changed = (not previous) or fingerprint != previous
        return ChangeResult(changed=changed, fingerprint=fingerprint, previous=previous)
