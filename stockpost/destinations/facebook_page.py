from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from stockpost.core.errors import PublishError
from stockpost.destinations.base import PostResult
from stockpost.destinations.credentials import PageTokenProvider
from stockpost.destinations.graph import graph_error, is_transient
from stockpost.services.http_client import HttpResult, StockHttpClient
from stockpost.services.retry import RetryableError, RetryPolicy


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaAttachment:
    kind: str  # "video" | "image"
    path: Path
    content_type: str


def pick_media(*, video_path: str | Path, image_path: str | Path) -> MediaAttachment | None:
    """Video wins over image; None when the renderer produced neither."""
    video = Path(video_path)
    if video.is_file():
        return MediaAttachment(kind="video", path=video, content_type="video/mp4")
    image = Path(image_path)
    if image.is_file():
        return MediaAttachment(kind="image", path=image, content_type="image/png")
    return None


class FacebookPagePublisher:
    """
    Posts the report to a page as a photo or video with the text as caption.

    - Video -> /{page_id}/videos (description + source)
    - Image -> /{page_id}/photos (message + published + source)
    - No media -> skipped, never a text-only post.
    """

    destination = "facebook_page"

    def __init__(
        self,
        *,
        client: StockHttpClient,
        tokens: PageTokenProvider,
        page_id: str,
        graph_base_url: str,
        video_path: str,
        image_path: str,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = 120.0,
    ):
        self.client = client
        self.tokens = tokens
        self.page_id = page_id
        self.graph_base_url = graph_base_url.rstrip("/")
        self.video_path = video_path
        self.image_path = image_path
        self.retry = retry or RetryPolicy()
        self.timeout_seconds = timeout_seconds

    async def publish(self, message: str) -> PostResult:
        media = pick_media(video_path=self.video_path, image_path=self.image_path)
        if media is None:
            log.info("publisher: no %s or %s found, skipping post", self.video_path, self.image_path)
            return PostResult(ok=False, skipped=True)

        token = await self.tokens.get_token()
        blob = await asyncio.to_thread(media.path.read_bytes)

        attempts = 0

        async def _attempt(attempt: int) -> HttpResult:
            nonlocal attempts
            attempts = attempt
            result = await self._post(media, blob, message=message, token=token)
            if result.ok:
                return result
            if is_transient(result):
                code = graph_error(result).get("code")
                reason = f"{result.error_message} (graph code {code})" if code is not None else result.error_message
                raise RetryableError(reason or "post failed", error_code=result.error_code)
            raise PublishError(
                f"post rejected: {result.error_message}",
                error_code=result.error_code,
                retryable=False,
                attempts=attempt,
            )

        try:
            result = await self.retry.run(_attempt, label="page post")
        except RetryableError as e:
            raise PublishError(
                f"post failed after {attempts} attempts: {e}",
                error_code=e.error_code,
                retryable=True,
                attempts=attempts,
            ) from e

        post_id = result.detail.get("post_id") or result.detail.get("id")
        url = f"https://facebook.com/{post_id}" if post_id else None
        log.info("publisher: posted %s, %s", media.kind, url)
        return PostResult(ok=True, post_id=post_id, url=url, media_kind=media.kind, attempts=attempts, detail=result.detail)

    async def _post(self, media: MediaAttachment, blob: bytes, *, message: str, token: str) -> HttpResult:
        files = {"source": (media.path.name, blob, media.content_type)}
        if media.kind == "video":
            return await self.client.post_form(
                url=f"{self.graph_base_url}/{self.page_id}/videos",
                data={"description": message, "access_token": token},
                files=files,
                timeout_seconds=self.timeout_seconds,
            )
        return await self.client.post_form(
            url=f"{self.graph_base_url}/{self.page_id}/photos",
            data={"message": message, "access_token": token, "published": "true"},
            files=files,
            timeout_seconds=self.timeout_seconds,
        )
