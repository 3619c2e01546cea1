"""
HTTP client shared by every API flavour.

Thin wrapper around ``httpx.Client``: adds the ``X-API-KEY`` header, sends
bodies as JSON, and turns every non-2xx response into an ``ApiError``
carrying whatever body the server returned. No retries happen here;
callers that know an operation is idempotent retry it themselves.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

import httpx

from ..errors import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 100
MAX_FAN_OUT = 8


class ApiClient:
    """
    JSON-over-HTTPS client bound to one base URL and API key.

    Args:
        base_url: API root; a trailing slash is ignored
        api_key: Sent as ``X-API-KEY``; surrounding whitespace is stripped
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key.strip()
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"X-API-KEY": self.api_key, "Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            body: JSON-serialisable request body (sent with a JSON content type)
            params: Query parameters; None values are dropped

        Returns:
            Decoded JSON, or None for an empty response body

        Raises:
            ApiError: Non-2xx status or transport failure
        """
        method = method.upper()
        query = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug("...calling %s %s%s...", method, self.base_url, path)

        kwargs: dict[str, Any] = {"params": query or None}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(
                f"{method} {path} failed: {exc}",
                status_code=None,
                body=None,
                method=method,
                path=path,
            ) from exc

        payload = _decode_body(response)
        if not response.is_success:
            logger.debug("%s %s -> %s: %r", method, path, response.status_code, payload)
            raise ApiError(
                f"{method} {path} returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                body=payload,
                method=method,
                path=path,
            )
        return payload

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, body=body if body is not None else {})

    def patch(self, path: str, body: Any = None) -> Any:
        return self.request("PATCH", path, body=body if body is not None else {})


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def describe_api_error(exc: ApiError) -> str:
    """One-line rendering of an ApiError including the server's message."""
    detail = exc.body
    if isinstance(detail, dict):
        detail = detail.get("message") or detail.get("error") or detail
    if detail in (None, ""):
        return str(exc)
    return f"{exc} - {detail}"


# ============ Concurrent read-only fan-out ============


def fetch_concurrently(*calls: Callable[[], Any]) -> list[Any]:
    """
    Run independent read-only calls in parallel and join them.

    Results are returned in call order; the first exception is re-raised.
    """
    if len(calls) <= 1:
        return [call() for call in calls]
    with ThreadPoolExecutor(max_workers=min(len(calls), MAX_FAN_OUT)) as pool:
        futures = [pool.submit(call) for call in calls]
        return [future.result() for future in futures]


def fetch_all_pages(
    fetch_page: Callable[[int, int], dict[str, Any]],
    limit: int = DEFAULT_PAGE_SIZE,
) -> list[Any]:
    """
    Collect every item of an offset-paginated ``{items, total}`` listing.

    The first page is fetched alone to learn ``total``; the remaining
    pages are requested concurrently and concatenated in page order.

    Args:
        fetch_page: ``(limit, offset) -> {"items": [...], "total": n}``
        limit: Page size
    """
    first = fetch_page(limit, 0)
    items = list(first.get("items") or [])
    total = int(first.get("total") or len(items))
    offsets = list(range(limit, total, limit))
    if not offsets:
        return items

    pages = fetch_concurrently(
        *[(lambda offset=offset: fetch_page(limit, offset)) for offset in offsets]
    )
    for page in pages:
        items.extend(page.get("items") or [])
    return items
