import asyncio
import logging
import time
from typing import AsyncIterator, Awaitable, Callable, List

from metrics import RequestOutcome, RunConfig

logger = logging.getLogger(__name__)

AttemptFn = Callable[[str], Awaitable[RequestOutcome]]


class Dispatcher:
    """Issues config.total_requests attempts with at most config.concurrency unresolved.

    A fixed pool of worker tasks pulls from a shared remaining-count. Each worker
    issues its next attempt only after its previous one resolved, so the number
    of attempts in flight can never exceed the pool size. Outcomes are handed to
    the consumer through a queue in completion order.
    """

    def __init__(self, config: RunConfig, attempt: AttemptFn):
        if config.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {config.concurrency}")
        self.config = config
        self.attempt = attempt
        self.remaining = config.total_requests
        self.in_flight = 0
        self.results: asyncio.Queue = asyncio.Queue()
        self.worker_tasks: List[asyncio.Task] = []

    def _claim(self) -> bool:
        # Runs on the event loop between awaits, so check-and-decrement is atomic
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        return True

    async def _run_attempt(self) -> RequestOutcome:
        start_time = time.perf_counter()
        try:
            return await self.attempt(self.config.target)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Capability should never raise; record it as failed so the count still adds up
            logger.error(f"Request capability raised for {self.config.target}: {e}", exc_info=True)
            return RequestOutcome(False, 0, time.perf_counter() - start_time)

    async def _worker(self, worker_id: int):
        while self._claim():
            self.in_flight += 1
            try:
                outcome = await self._run_attempt()
            finally:
                self.in_flight -= 1
            logger.debug(f"Worker-{worker_id}: outcome {outcome}")
            self.results.put_nowait(outcome)

    def _start_workers(self):
        pool_size = min(self.config.concurrency, self.config.total_requests)
        logger.info(f"Dispatching {self.config.total_requests} requests to {self.config.target} "
                    f"with concurrency {self.config.concurrency} ({pool_size} workers)")
        self.worker_tasks = [
            asyncio.create_task(self._worker(i), name=f"Dispatcher-Worker-{i}")
            for i in range(pool_size)
        ]

    async def _stop_workers(self):
        for task in self.worker_tasks:
            if not task.done():
                task.cancel()
        if self.worker_tasks:
            await asyncio.gather(*self.worker_tasks, return_exceptions=True)

    async def outcomes(self) -> AsyncIterator[RequestOutcome]:
        """Yields exactly total_requests outcomes, then returns once every worker has exited."""
        self._start_workers()
        try:
            for _ in range(self.config.total_requests):
                yield await self.results.get()
            await asyncio.gather(*self.worker_tasks)
            logger.info(f"All {self.config.total_requests} requests resolved.")
        finally:
            # No-op after a full drain; cancels outstanding attempts if the consumer bailed out
            await self._stop_workers()
