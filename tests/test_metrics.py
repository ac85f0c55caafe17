import asyncio
import pytest
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from metrics import (Aggregator, AggregatorFinalizedError, AggregatorState, LatencyStats,
                     RequestOutcome, compute_latency_stats, percentile_index, requests_per_second)


def ok(elapsed):
    return RequestOutcome(True, 200, elapsed)


def failed(elapsed):
    return RequestOutcome(False, 0, elapsed)


async def outcome_stream(outcomes):
    for outcome in outcomes:
        await asyncio.sleep(0)
        yield outcome


class TestLatencyStats:
    def test_five_samples(self):
        stats = compute_latency_stats([300, 100, 500, 200, 400])
        assert stats.min == 100
        assert stats.max == 500
        assert stats.mean == 300
        assert stats.p50 == 300  # index floor(5*50/100) = 2
        assert stats.p95 == 500  # index 4
        assert stats.p99 == 500  # index 4

    def test_empty_samples_are_zero(self):
        assert compute_latency_stats([]) == LatencyStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    def test_single_sample(self):
        stats = compute_latency_stats([0.25])
        assert stats == LatencyStats(0.25, 0.25, 0.25, 0.25, 0.25, 0.25)

    def test_nearest_rank_not_interpolated(self):
        # 100 samples 1..100: p50 is element 50 (value 51), p99 element 99 (value 100)
        stats = compute_latency_stats(list(range(100, 0, -1)))
        assert stats.p50 == 51
        assert stats.p95 == 96
        assert stats.p99 == 100

    def test_two_samples(self):
        stats = compute_latency_stats([2.0, 1.0])
        assert stats.p50 == 2.0
        assert stats.p99 == 2.0
        assert stats.mean == pytest.approx(1.5)

    @pytest.mark.parametrize("n", [1, 2, 3, 7, 10, 99, 101, 1000])
    def test_percentile_index_in_range(self, n):
        for p in (50, 95, 99):
            assert 0 <= percentile_index(n, p) < n

    def test_percentile_index_floor(self):
        assert percentile_index(5, 50) == 2
        assert percentile_index(5, 95) == 4
        assert percentile_index(19, 95) == 18
        assert percentile_index(20, 95) == 19
        assert percentile_index(10, 99) == 9


class TestRequestsPerSecond:
    def test_rate(self):
        assert requests_per_second(100, 2.0) == pytest.approx(50.0)

    def test_zero_wall_time_is_sentinel(self):
        assert requests_per_second(0, 0.0) == 0.0
        assert requests_per_second(10, 0.0) == 0.0


class TestAggregator:
    def test_counts_and_failures_in_latency(self):
        agg = Aggregator()
        for outcome in [ok(0.1), failed(0.5), ok(0.3)]:
            agg.add(outcome)
        summary = agg.finalize(total_requests=3, wall_time_s=1.5)

        assert summary.issued == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.succeeded + summary.failed == summary.issued
        assert summary.latency.max == 0.5  # failed attempt counted
        assert summary.latency.mean == pytest.approx(0.3)
        assert summary.requests_per_second == pytest.approx(2.0)
        assert summary.elapsed_wall_time == 1.5

    def test_rate_uses_configured_total(self):
        agg = Aggregator()
        agg.add(ok(0.1))
        summary = agg.finalize(total_requests=10, wall_time_s=2.0)
        assert summary.issued == 1
        assert summary.requests_per_second == pytest.approx(5.0)

    def test_empty_run(self):
        summary = Aggregator().finalize(total_requests=0, wall_time_s=0.0)
        assert summary.issued == 0
        assert summary.latency == LatencyStats()
        assert summary.requests_per_second == 0.0

    def test_all_failed(self):
        agg = Aggregator()
        for elapsed in (0.01, 0.02, 0.03):
            agg.add(failed(elapsed))
        summary = agg.finalize(3, 0.05)
        assert summary.succeeded == 0
        assert summary.failed == 3
        assert summary.latency.min == 0.01
        assert summary.latency.max == 0.03

    def test_consume_stream(self):
        agg = Aggregator()
        asyncio.run(agg.consume(outcome_stream([ok(0.2), failed(0.1), ok(0.4)])))
        assert agg.issued == 3
        assert agg.durations == [0.2, 0.1, 0.4]  # arrival order

    def test_finalize_once(self):
        agg = Aggregator()
        agg.add(ok(0.1))
        first = agg.finalize(1, 0.1)
        assert agg.state is AggregatorState.FINALIZED
        assert agg.summary == first
        with pytest.raises(AggregatorFinalizedError):
            agg.finalize(1, 0.1)

    def test_no_outcomes_after_finalize(self):
        agg = Aggregator()
        agg.finalize(0, 0.0)
        with pytest.raises(AggregatorFinalizedError):
            agg.add(ok(0.1))
        with pytest.raises(AggregatorFinalizedError):
            asyncio.run(agg.consume(outcome_stream([ok(0.1)])))
        assert agg.issued == 0
