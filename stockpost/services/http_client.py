from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Literal

import httpx


HttpMethod = Literal["GET", "POST"]

# multipart file tuple as httpx expects it: (filename, fileobj-or-bytes, content_type)
FilePart = tuple[str, Any, str]


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    status_code: int | None
    detail: dict[str, Any]

    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False

    elapsed_ms: int | None = None
    response_headers: dict[str, str] | None = None


def _is_json_response(resp: httpx.Response) -> bool:
    ct = (resp.headers.get("content-type") or "").lower()
    return "application/json" in ct or ct.endswith("+json")


def _cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class StockHttpClient:
    """
    Shared HTTP client for upstream fetches and the page publisher.

    - Uses one AsyncClient instance (connection pooling).
    - Does NOT retry; callers wrap it in a RetryPolicy.
    - Returns structured result with retryable classification.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        max_response_body_chars: int = 20_000,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_body = max_response_body_chars
        self._default_headers = dict(default_headers or {})
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        *,
        method: HttpMethod,
        url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        files: Mapping[str, FilePart] | None = None,
        timeout_seconds: float | None = None,
    ) -> HttpResult:
        # Merge headers (caller wins)
        h = dict(self._default_headers)
        if headers:
            h.update(dict(headers))

        kwargs: dict[str, Any] = {"headers": h, "params": dict(params or {})}
        if data is not None:
            kwargs["data"] = dict(data)
        if files is not None:
            kwargs["files"] = dict(files)
        if timeout_seconds is not None:
            kwargs["timeout"] = httpx.Timeout(timeout_seconds)

        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "timeout"},
                error_code="TIMEOUT",
                error_message=str(e) or "timeout",
                retryable=True,
            )
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "request_error"},
                error_code="REQUEST_ERROR",
                error_message=str(e) or type(e).__name__,
                retryable=True,
            )

        # Parse response
        detail: dict[str, Any]
        if _is_json_response(resp):
            try:
                parsed = resp.json()
                # Ensure dict payload (if API returns list/string, still keep it)
                detail = parsed if isinstance(parsed, dict) else {"data": parsed}
            except ValueError:
                detail = {"raw": _cap_text(resp.text, max_chars=self._max_body), "invalid_json": True}
        else:
            # Non-JSON response (HTML, text, etc.)
            detail = {
                "raw": _cap_text(resp.text, max_chars=self._max_body),
                "content_type": resp.headers.get("content-type"),
            }

        try:
            elapsed_ms = int(resp.elapsed.total_seconds() * 1000)
        except RuntimeError:
            elapsed_ms = None
        response_headers = {
            "content-type": resp.headers.get("content-type", ""),
            "date": resp.headers.get("date", ""),
            "retry-after": resp.headers.get("retry-after", ""),
        }

        if 200 <= resp.status_code < 300:
            return HttpResult(
                ok=True,
                status_code=resp.status_code,
                detail=detail,
                retryable=False,
                elapsed_ms=elapsed_ms,
                response_headers=response_headers,
            )

        # Retryability
        retryable = resp.status_code in (408, 429, 500, 502, 503, 504)

        # auth / not found never get better by retrying
        if resp.status_code in (400, 401, 403, 404):
            retryable = False

        return HttpResult(
            ok=False,
            status_code=resp.status_code,
            detail=detail,
            error_code=f"HTTP_{resp.status_code}",
            error_message=f"HTTP {resp.status_code}",
            retryable=retryable,
            elapsed_ms=elapsed_ms,
            response_headers=response_headers,
        )

    # helpers
    async def get_json(self, *, url: str, headers: Mapping[str, str] | None = None, params: Mapping[str, str] | None = None, timeout_seconds: float | None = None) -> HttpResult:
        return await self.request(method="GET", url=url, headers=headers, params=params, timeout_seconds=timeout_seconds)

    async def post_form(self, *, url: str, data: Mapping[str, str], files: Mapping[str, FilePart] | None = None, timeout_seconds: float | None = None) -> HttpResult:
        return await self.request(method="POST", url=url, data=data, files=files, timeout_seconds=timeout_seconds)
