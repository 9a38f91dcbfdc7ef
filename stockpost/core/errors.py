from __future__ import annotations


class StockPostError(Exception):
    """Base class for errors raised inside a poll cycle."""


class ConfigError(StockPostError):
    pass


class FetchError(StockPostError):
    """Network, timeout or parse failure while retrieving a snapshot."""

    def __init__(self, message: str, *, source: str, error_code: str = "FETCH_FAILED"):
        super().__init__(message)
        self.source = source
        self.error_code = error_code


class PublishError(StockPostError):
    """Posting failed (auth, network or rate limit after retries)."""

    def __init__(self, message: str, *, error_code: str | None = None, retryable: bool = False, attempts: int = 0):
        super().__init__(message)
        self.error_code = error_code
        self.retryable = retryable
        self.attempts = attempts


class PersistenceError(StockPostError):
    pass
