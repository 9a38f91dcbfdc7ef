from __future__ import annotations
from typing import Any

from stockpost.services.http_client import HttpResult


# Graph throttling / temporary outage codes; delivered as HTTP 400 or 403
GRAPH_TRANSIENT_CODES = frozenset({1, 2, 4, 17, 32, 341, 613})


def graph_error(result: HttpResult) -> dict[str, Any]:
    err = result.detail.get("error") if isinstance(result.detail, dict) else None
    return err if isinstance(err, dict) else {}


def is_transient(result: HttpResult) -> bool:
    """
    Whether a failed Graph call is worth retrying.

    Transport-level classification (timeouts, 408/429/5xx) comes from the HTTP
    client. On top of that, Graph reports rate limits in the error body with a
    4xx status, flagged by `is_transient` or by a throttling code.
    """
    if result.ok:
        return False
    if result.retryable:
        return True
    err = graph_error(result)
    if err.get("is_transient") is True:
        return True
    return err.get("code") in GRAPH_TRANSIENT_CODES
