from __future__ import annotations
import logging

from pydantic import SecretStr

from stockpost.core.errors import PublishError
from stockpost.destinations.graph import is_transient
from stockpost.services.http_client import HttpResult, StockHttpClient
from stockpost.services.retry import RetryableError, RetryPolicy


log = logging.getLogger(__name__)


class PageTokenProvider:
    """
    Long-lived page access token.

    Uses the configured long-lived token when present; otherwise exchanges the
    short-lived token once (fb_exchange_token grant) and keeps the result for
    the lifetime of the process. Cycles are single-flight, so no lock.
    `exchanges` counts exchange requests sent, retries included.
    """

    def __init__(
        self,
        *,
        client: StockHttpClient,
        graph_base_url: str,
        app_id: str | None,
        app_secret: SecretStr | None,
        short_lived_token: SecretStr | None,
        long_lived_token: SecretStr | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.client = client
        self.graph_base_url = graph_base_url.rstrip("/")
        self.app_id = app_id
        self.app_secret = app_secret
        self.short_lived_token = short_lived_token
        self._cached: str | None = long_lived_token.get_secret_value() if long_lived_token else None
        self.retry = retry or RetryPolicy()
        self.exchanges = 0

    async def get_token(self) -> str:
        if self._cached:
            return self._cached

        if not (self.app_id and self.app_secret and self.short_lived_token):
            raise PublishError("no page token configured and nothing to exchange", error_code="NO_CREDENTIALS")

        attempts = 0

        async def _attempt(attempt: int) -> str:
            nonlocal attempts
            attempts = attempt
            result = await self._exchange()
            token = result.detail.get("access_token") if result.ok else None
            if token:
                return token
            if is_transient(result):
                raise RetryableError(result.error_message or "token exchange failed", error_code=result.error_code)
            raise PublishError(
                f"token exchange failed: {result.error_message or 'no access_token in response'}",
                error_code=result.error_code or "TOKEN_EXCHANGE_FAILED",
                retryable=False,
                attempts=attempt,
            )

        try:
            token = await self.retry.run(_attempt, label="token exchange")
        except RetryableError as e:
            raise PublishError(
                f"token exchange failed after {attempts} attempts: {e}",
                error_code=e.error_code or "TOKEN_EXCHANGE_FAILED",
                retryable=True,
                attempts=attempts,
            ) from e

        log.info("credentials: exchanged short-lived page token for a long-lived one")
        self._cached = token
        return token

    async def _exchange(self) -> HttpResult:
        self.exchanges += 1
        return await self.client.get_json(
            url=f"{self.graph_base_url}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.app_id,
                "client_secret": self.app_secret.get_secret_value(),
                "fb_exchange_token": self.short_lived_token.get_secret_value(),
            },
        )
