from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class PostResult:
    ok: bool
    skipped: bool = False
    post_id: str | None = None
    url: str | None = None
    media_kind: str | None = None  # "video" | "image"
    attempts: int = 0
    detail: dict[str, Any] | None = None


@runtime_checkable
class Publisher(Protocol):
    """
    A publisher handles auth & transport for one posting destination.

    publish() returns a PostResult (ok, or skipped when there is nothing to
    attach) and raises PublishError once its retries are exhausted.
    """

    destination: str

    async def publish(self, message: str) -> PostResult:
        ...
