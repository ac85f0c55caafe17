# transport.py
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from metrics import RequestOutcome
from config import HTTP_TIMEOUT_SECONDS, HTTP_FOLLOW_REDIRECTS

logger = logging.getLogger(__name__)


class HttpAttempt:
    """Request capability backed by a shared httpx.AsyncClient.

    Any response, whatever its status code, is a successful attempt. Only a
    transport error (no connection, no response) is recorded as a failure.
    Elapsed time stops when the response headers arrive; the body is drained
    afterwards so the connection can go back to the pool.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __call__(self, url: str) -> RequestOutcome:
        start_time = time.perf_counter()
        try:
            async with self.client.stream("GET", url) as response:
                elapsed = time.perf_counter() - start_time
                try:
                    await response.aread()
                except httpx.HTTPError as e:
                    # Response already arrived, so the attempt still succeeded
                    logger.debug(f"GET {url}: body read failed: {type(e).__name__}: {e}")
        except httpx.HTTPError as e:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"GET {url} failed after {elapsed * 1000:.2f}ms: {type(e).__name__}: {e}")
            return RequestOutcome(False, 0, elapsed)
        logger.debug(f"GET {url} -> {response.status_code} in {elapsed * 1000:.2f}ms")
        return RequestOutcome(True, response.status_code, elapsed)


@asynccontextmanager
async def open_http_attempt(concurrency: int,
                            timeout: Optional[float] = HTTP_TIMEOUT_SECONDS,
                            transport: Optional[httpx.AsyncBaseTransport] = None) -> AsyncIterator[HttpAttempt]:
    # Pool sized to the cap so the client never queues attempts the dispatcher admitted
    limits = httpx.Limits(max_connections=max(1, concurrency), max_keepalive_connections=max(1, concurrency))
    async with httpx.AsyncClient(timeout=timeout, limits=limits,
                                 follow_redirects=HTTP_FOLLOW_REDIRECTS,
                                 transport=transport) as client:
        yield HttpAttempt(client)
