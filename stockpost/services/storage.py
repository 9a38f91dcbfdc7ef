from __future__ import annotations
import asyncio
import logging
import os
import tempfile
from pathlib import Path

from stockpost.core.errors import PersistenceError


log = logging.getLogger(__name__)


class FileFingerprintStore:
    """
    Last accepted fingerprint per feed, one plain-text hex file each.

    - The default feed uses `hash_file` as-is (e.g. last_stock_hash.txt).
    - Any other feed gets `<stem>.<feed><suffix>` next to it.
    - Writes go to a temp file in the same directory, then os.replace, so a
      reader never sees a half-written digest.
    """

    def __init__(self, hash_file: str, *, default_feed: str = "stock"):
        self.path = Path(hash_file)
        self.default_feed = default_feed

    def path_for(self, feed: str | None = None) -> Path:
        feed = (feed or self.default_feed).strip()
        if feed == self.default_feed:
            return self.path
        return self.path.with_name(f"{self.path.stem}.{feed}{self.path.suffix}")

    def load(self, feed: str | None = None) -> str:
        path = self.path_for(feed)
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise PersistenceError(f"cannot read fingerprint {path}: {e}") from e

    def save(self, fingerprint: str, feed: str | None = None) -> None:
        path = self.path_for(feed)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(fingerprint)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"cannot write fingerprint {path}: {e}") from e

    def reset(self, feed: str | None = None) -> None:
        """Forget the last fingerprint so the next snapshot is always posted."""
        self.save("", feed)
        log.info("storage: fingerprint reset feed=%s", feed or self.default_feed)

    # async wrappers: keep blocking file I/O off the event loop
    async def aload(self, feed: str | None = None) -> str:
        return await asyncio.to_thread(self.load, feed)

    async def asave(self, fingerprint: str, feed: str | None = None) -> None:
        await asyncio.to_thread(self.save, fingerprint, feed)

    async def areset(self, feed: str | None = None) -> None:
        await asyncio.to_thread(self.reset, feed)
