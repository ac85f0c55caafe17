import logging
import time
from typing import Callable, Optional

from dispatcher import Dispatcher, AttemptFn
from metrics import Aggregator, RequestOutcome, RunConfig, RunSummary
from transport import open_http_attempt

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[RequestOutcome], None]


async def run_benchmark(config: RunConfig, attempt: AttemptFn,
                        on_outcome: Optional[OutcomeCallback] = None) -> RunSummary:
    """Drive a Dispatcher into an Aggregator and return the finalized summary.

    Wall time runs from dispatch start to stream exhaustion. on_outcome sees
    every outcome in completion order before it is aggregated.
    """
    dispatcher = Dispatcher(config, attempt)
    aggregator = Aggregator()

    start_time = time.perf_counter()
    stream = dispatcher.outcomes()
    try:
        async for outcome in stream:
            if on_outcome is not None:
                on_outcome(outcome)
            aggregator.add(outcome)
    finally:
        await stream.aclose()
    total_benchmark_time_s = time.perf_counter() - start_time

    summary = aggregator.finalize(config.total_requests, total_benchmark_time_s)
    logger.info(f"Benchmark finished in {total_benchmark_time_s:.2f}s: "
                f"{summary.succeeded} succeeded, {summary.failed} failed, "
                f"{summary.requests_per_second:.2f} req/s")
    return summary


async def run_http_benchmark(config: RunConfig,
                             on_outcome: Optional[OutcomeCallback] = None) -> RunSummary:
    async with open_http_attempt(config.concurrency) as attempt:
        return await run_benchmark(config, attempt, on_outcome)
