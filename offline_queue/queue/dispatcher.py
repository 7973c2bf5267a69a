"""
Dispatcher - Invokes action handlers on behalf of the replay driver.

The replay driver only needs something that takes (method, path, body,
headers) and reports a status code. HttpDispatcher does that over
httpx, either against a base URL or in-process against the hosting
ASGI application.
"""

import httpx
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

# Recomputed by httpx or meaningless once the request is replayed
DROPPED_HEADERS = frozenset({"host", "content-length", "connection", "transfer-encoding"})

INTERNAL_BASE_URL = "http://offline-queue.internal"


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of one handler invocation.

    Attributes:
        status_code: HTTP status returned by the handler
        body: Response text, kept short for diagnostics
    """
    status_code: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Dispatcher(Protocol):
    async def dispatch(
        self,
        method: str,
        path: str,
        payload: Any,
        headers: Optional[dict[str, str]] = None
    ) -> DispatchResult:
        ...


class HttpDispatcher:
    """
    Replays actions as HTTP requests.

    A single AsyncClient is reused across a pass. Transport errors
    (connection refused, timeouts) propagate as httpx exceptions; the
    replay driver turns them into per-action failures.
    """

    def __init__(
        self,
        base_url: str = INTERNAL_BASE_URL,
        timeout: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def for_app(cls, app: Any, timeout: float = 8.0) -> "HttpDispatcher":
        """Dispatch in-process to an ASGI app's own routes."""
        return cls(
            base_url=INTERNAL_BASE_URL,
            timeout=timeout,
            transport=httpx.ASGITransport(app=app),
        )

    async def dispatch(
        self,
        method: str,
        path: str,
        payload: Any,
        headers: Optional[dict[str, str]] = None
    ) -> DispatchResult:
        forwarded = {
            k: v for k, v in (headers or {}).items()
            if k.lower() not in DROPPED_HEADERS
        }

        # DELETE with a body is unusual but handlers in the wild accept it
        response = await self._client.request(
            method,
            path,
            json=payload,
            headers=forwarded,
        )

        logger.debug(f"Dispatched {method} {path} -> {response.status_code}")
        return DispatchResult(status_code=response.status_code, body=response.text[:500])

    async def aclose(self) -> None:
        await self._client.aclose()
