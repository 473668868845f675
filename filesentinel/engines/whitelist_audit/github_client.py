"""Async GitHub API client with rate-limit handling, redirects, and retries."""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Any

import httpx
import structlog

from filesentinel import __version__
from filesentinel.core.config import DEFAULT_API_URL
from filesentinel.core.exceptions import ContentDecodeError
from filesentinel.engines.whitelist_audit.models import RemoteContent

log = structlog.get_logger("filesentinel.engine")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_MAX_RATE_LIMIT_WAIT = 120  # seconds; longer waits fail the request instead

_USER_AGENT = f"filesentinel/{__version__}"


class RateLimitError(Exception):
    """Raised when GitHub rate limit is exhausted and we need to wait."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


def decode_content(body: Any) -> str:
    """Turn a contents API payload into the file's text.

    Raises ContentDecodeError for directory listings, missing ``content`` or
    an encoding we cannot handle.
    """
    if not isinstance(body, dict):
        raise ContentDecodeError("contents payload is not a file object")

    content = body.get("content")
    if not isinstance(content, str):
        raise ContentDecodeError("contents payload has no content field")

    encoding = (body.get("encoding") or "").lower()
    if encoding == "base64":
        try:
            # GitHub wraps base64 at 60 columns; b64decode skips the newlines.
            raw = base64.b64decode(content)
            return raw.decode("utf-8")
        except (binascii.Error, ValueError) as exc:
            raise ContentDecodeError(f"cannot decode base64 content: {exc}") from exc
    if encoding in ("", "none", "utf-8", "utf8"):
        return content
    raise ContentDecodeError(f"unsupported content encoding: {encoding!r}")


class GitHubClient:
    """Thin async wrapper around the GitHub REST API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=30.0,
            follow_redirects=True,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_contents(self, identity: str, path: str) -> RemoteContent:
        """Fetch *path* from the default branch of *identity* (``owner/name``).

        Never raises.  A 404 is a normal ``absent`` result; every other
        failure is logged and returned as ``failed``.
        """
        url = f"/repos/{identity}/contents/{path}"
        try:
            response = await self._request_with_retry("GET", url)
            await self._check_rate_limit(response)
            text = decode_content(response.json())
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                log.debug("github.content_absent", repo=identity, path=path)
                return RemoteContent(status="absent")
            transient = status >= 500 or status == 429
            log.error(
                "github.fetch_failed",
                repo=identity,
                path=path,
                status=status,
                transient=transient,
            )
            return RemoteContent(
                status="failed", error=f"HTTP {status} fetching {path}", transient=transient
            )
        except (RateLimitError, httpx.TransportError) as exc:
            log.error("github.fetch_failed", repo=identity, path=path, error=str(exc))
            return RemoteContent(status="failed", error=str(exc) or repr(exc), transient=True)
        except (ContentDecodeError, ValueError) as exc:
            log.error("github.decode_failed", repo=identity, path=path, error=str(exc))
            return RemoteContent(status="failed", error=str(exc))

        return RemoteContent(status="found", text=text)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single GET with retries, returns parsed JSON."""
        response = await self._request_with_retry("GET", path, params=params)
        await self._check_rate_limit(response)
        return response.json()

    async def post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Single POST, returns parsed JSON.

        Not retried: a write that timed out may still have been applied.
        """
        response = await self._request_with_retry("POST", path, json=payload, retry=False)
        await self._check_rate_limit(response)
        return response.json()

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        *,
        retry: bool = True,
    ) -> httpx.Response:
        """Send a request with exponential backoff on 5xx, rate-limit, and transport errors."""
        attempts = _MAX_RETRIES if retry else 1
        last_exc: Exception | None = None
        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, params=params, json=json)

                # 403/429 with rate-limit headers → sleep and retry
                if resp.status_code in (403, 429) and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    last_exc = RateLimitError(wait)
                    if wait > _MAX_RATE_LIMIT_WAIT or attempt == attempts - 1:
                        break
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=attempts,
                    )
                    await asyncio.sleep(wait)
                    continue

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx — retry
                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=attempts,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TransportError as exc:
                log.warning(
                    "github.transport_error",
                    url=url,
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    max_retries=attempts,
                )
                last_exc = exc

            if attempt < attempts - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = min(self._get_rate_limit_wait(response), _MAX_RATE_LIMIT_WAIT)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403/429 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for secondary rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

