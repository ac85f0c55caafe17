import logging
from enum import Enum
from typing import NamedTuple, List, Sequence, AsyncIterator, Optional

logger = logging.getLogger(__name__)

PERCENTILES = (50, 95, 99)


class RequestOutcome(NamedTuple):
    succeeded: bool
    status_code: int  # 0 when no response was received
    elapsed: float    # seconds spent on the attempt, success or not


class RunConfig(NamedTuple):
    target: str
    total_requests: int
    concurrency: int


class LatencyStats(NamedTuple):
    # Same unit as the samples they were computed from (seconds in the driver)
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


class RunSummary(NamedTuple):
    issued: int
    succeeded: int
    failed: int
    elapsed_wall_time: float
    requests_per_second: float
    latency: LatencyStats


def percentile_index(sample_count: int, p: int) -> int:
    """Nearest-rank index into a sorted sequence: floor(n * p / 100).

    Integer arithmetic keeps the result exact, and p < 100 keeps it below n.
    """
    return sample_count * p // 100


def compute_latency_stats(samples: Sequence[float]) -> LatencyStats:
    """Reduce elapsed-time samples to min/max/mean and nearest-rank percentiles.

    An empty sample set is reported as all zeros rather than raising.
    """
    if not samples:
        return LatencyStats()

    ordered = sorted(samples)
    n = len(ordered)
    p50, p95, p99 = (ordered[percentile_index(n, p)] for p in PERCENTILES)
    return LatencyStats(
        min=ordered[0],
        max=ordered[-1],
        mean=sum(ordered) / n,
        p50=p50,
        p95=p95,
        p99=p99,
    )


def requests_per_second(total_requests: int, wall_time_s: float) -> float:
    # 0.0 is the sentinel for a zero-length run
    return total_requests / wall_time_s if wall_time_s > 0 else 0.0


class AggregatorFinalizedError(RuntimeError):
    pass


class AggregatorState(Enum):
    COLLECTING = "COLLECTING"
    FINALIZED = "FINALIZED"


class Aggregator:
    """Counts outcomes as they arrive and builds the RunSummary once drained."""

    def __init__(self):
        self.state = AggregatorState.COLLECTING
        self.succeeded = 0
        self.failed = 0
        self.durations: List[float] = []  # arrival order; sorted at finalize
        self.summary: Optional[RunSummary] = None

    @property
    def issued(self) -> int:
        return self.succeeded + self.failed

    def _check_collecting(self):
        if self.state is AggregatorState.FINALIZED:
            raise AggregatorFinalizedError("Aggregator already finalized; no more outcomes accepted")

    def add(self, outcome: RequestOutcome):
        self._check_collecting()
        if outcome.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1
        # Failed attempts still contribute the time spent trying
        self.durations.append(outcome.elapsed)

    async def consume(self, outcomes: AsyncIterator[RequestOutcome]):
        self._check_collecting()
        async for outcome in outcomes:
            self.add(outcome)

    def finalize(self, total_requests: int, wall_time_s: float) -> RunSummary:
        self._check_collecting()
        self.state = AggregatorState.FINALIZED
        self.summary = RunSummary(
            issued=self.issued,
            succeeded=self.succeeded,
            failed=self.failed,
            elapsed_wall_time=wall_time_s,
            requests_per_second=requests_per_second(total_requests, wall_time_s),
            latency=compute_latency_stats(self.durations),
        )
        logger.debug(f"Aggregator finalized: {self.summary}")
        return self.summary
