"""Client-side readiness polling for an AgileFlow backend.

A backend counts as ready when ``GET {base_url}/api/health`` answers with a
2xx status and ``{"status": "ok"}`` *and* ``GET {base_url}/api/ready``
answers with a 2xx status and ``{"status": "ready"}``. Every failure mode
(connection refused, timeout, non-2xx, malformed JSON) is reported as
``False`` and logged as a warning; nothing is raised to the caller.

Example::

    async with httpx.AsyncClient() as client:
        poller = ReadinessPoller("http://localhost:3001", client=client)
        if not await poller.wait_until_ready(max_wait_ms=30_000):
            raise SystemExit("backend never became ready")
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import httpx

from agileflow.core.middleware import CORRELATION_ID_HEADER

HEALTH_PATH = "/api/health"
READY_PATH = "/api/ready"

# Per-request timeouts in seconds; the health call is allowed twice as long
HEALTH_TIMEOUT = 10.0
READY_TIMEOUT = 5.0

DEFAULT_MAX_WAIT_MS = 60000
DEFAULT_POLL_INTERVAL_MS = 2000

SleepFunc = Callable[[float], Awaitable[Any]]
ClockFunc = Callable[[], float]

logger = logging.getLogger(__name__)


class ProbeFailedError(Exception):
    """A single probe request did not produce the expected status."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class ReadinessPoller:
    """Poll a backend's liveness and readiness endpoints.

    Args:
        base_url: Origin of the backend, e.g. ``http://localhost:3001``.
        client: Optional shared ``httpx.AsyncClient``. When omitted, a client
            is opened for each check and closed afterwards.
        health_timeout: Timeout in seconds for the liveness request.
        ready_timeout: Timeout in seconds for the readiness request.
        sleep: Coroutine function used between attempts.
        clock: Monotonic clock in seconds used for the deadline.
        log: Logger that receives failure diagnostics.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        health_timeout: float = HEALTH_TIMEOUT,
        ready_timeout: float = READY_TIMEOUT,
        sleep: SleepFunc = asyncio.sleep,
        clock: ClockFunc = time.monotonic,
        log: logging.Logger | None = None,
    ) -> None:
        if not base_url:
            msg = "base_url is required"
            raise ValueError(msg)
        self.base_url = base_url.rstrip("/")
        self.health_timeout = health_timeout
        self.ready_timeout = ready_timeout
        self._client = client
        self._sleep = sleep
        self._clock = clock
        self._log = log or logger

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{HEALTH_PATH}"

    @property
    def ready_url(self) -> str:
        return f"{self.base_url}{READY_PATH}"

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _probe(
        self,
        client: httpx.AsyncClient,
        url: str,
        timeout: float,
        correlation_id: str | None = None,
    ) -> Any:
        """GET ``url`` and return its ``status`` field.

        Raises:
            ProbeFailedError: The response was not a 2xx or not a JSON object.
            TimeoutError: The whole request took longer than ``timeout``.
        """
        headers = {CORRELATION_ID_HEADER: correlation_id} if correlation_id else None
        # httpx applies ``timeout`` per phase; asyncio.timeout bounds the whole call
        async with asyncio.timeout(timeout):
            response = await client.get(url, timeout=timeout, headers=headers)
        if not response.is_success:
            raise ProbeFailedError(url, f"HTTP {response.status_code}")
        body = response.json()
        if not isinstance(body, dict):
            raise ProbeFailedError(url, "response body is not a JSON object")
        return body.get("status")

    async def check_once(self, correlation_id: str | None = None) -> bool:
        """Check liveness then readiness once.

        The readiness request is skipped when the liveness request fails.
        ``correlation_id`` is sent as ``X-Correlation-ID`` on both requests.
        """
        try:
            async with self._http() as client:
                health_status = await self._probe(
                    client, self.health_url, self.health_timeout, correlation_id
                )
                ready_status = await self._probe(
                    client, self.ready_url, self.ready_timeout, correlation_id
                )
        except (
            httpx.HTTPError,
            httpx.InvalidURL,
            ProbeFailedError,
            TimeoutError,
            ValueError,
        ) as e:
            self._log.warning(
                "Backend health check failed: %s",
                str(e) or type(e).__name__,
                extra={"base_url": self.base_url, "error": repr(e)},
            )
            return False

        if health_status == "ok" and ready_status == "ready":
            return True

        self._log.warning(
            "Backend not ready: health=%s ready=%s",
            health_status,
            ready_status,
            extra={"base_url": self.base_url},
        )
        return False

    async def wait_until_ready(
        self,
        max_wait_ms: int = DEFAULT_MAX_WAIT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> bool:
        """Poll :meth:`check_once` until it succeeds or ``max_wait_ms`` elapses.

        Returns:
            True as soon as one check succeeds, False once the deadline passes.
        """
        if max_wait_ms < 0 or poll_interval_ms < 0:
            msg = "max_wait_ms and poll_interval_ms must be non-negative"
            raise ValueError(msg)

        correlation_id = f"readiness-{uuid4().hex[:12]}"
        max_wait = max_wait_ms / 1000
        started = self._clock()
        attempts = 0
        while self._clock() - started < max_wait:
            attempts += 1
            if await self.check_once(correlation_id):
                self._log.info(
                    "Backend ready after %d attempt(s)",
                    attempts,
                    extra={"base_url": self.base_url, "correlation_id": correlation_id},
                )
                return True
            await self._sleep(poll_interval_ms / 1000)

        self._log.warning(
            "Backend not ready after %dms (%d attempts)",
            max_wait_ms,
            attempts,
            extra={"base_url": self.base_url, "correlation_id": correlation_id},
        )
        return False


async def check_once(
    base_url: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Check once whether the backend at ``base_url`` is live and ready."""
    return await ReadinessPoller(base_url, client=client).check_once()


async def wait_until_ready(
    base_url: str,
    max_wait_ms: int = DEFAULT_MAX_WAIT_MS,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    *,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Wait for the backend at ``base_url`` to become ready."""
    poller = ReadinessPoller(base_url, client=client)
    return await poller.wait_until_ready(max_wait_ms, poll_interval_ms)
