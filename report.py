import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from metrics import LatencyStats, RequestOutcome, RunConfig, RunSummary
from config import PROGRESS_LINE_WIDTH

logger = logging.getLogger(__name__)

LATENCY_FIELDS = ("avg_ms", "p50_ms", "p95_ms", "p99_ms", "min_ms", "max_ms")


# out=None means sys.stdout at call time
def print_header(config: RunConfig, out: Optional[TextIO] = None):
    print(f"Load testing: {config.target}", file=out)
    print(f"Total requests: {config.total_requests}", file=out)
    print(f"Concurrency: {config.concurrency}\n", file=out)


class ProgressPrinter:
    """Prints '.' per successful outcome and 'F' per failure, breaking the line every PROGRESS_LINE_WIDTH."""

    def __init__(self, total_requests: int, out: Optional[TextIO] = None,
                 line_width: int = PROGRESS_LINE_WIDTH):
        self.total_requests = total_requests
        self._out = out
        self.line_width = line_width
        self.completed = 0

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def __call__(self, outcome: RequestOutcome):
        self.out.write("." if outcome.succeeded else "F")
        self.completed += 1
        if self.completed % self.line_width == 0:
            self.out.write(f" {self.completed}/{self.total_requests}\n")
        self.out.flush()

    def finish(self):
        if self.completed % self.line_width != 0:
            self.out.write("\n")
            self.out.flush()


def print_summary(summary: RunSummary, out: Optional[TextIO] = None):
    print("\n\nResults:", file=out)
    print("========", file=out)
    print(f"Total time: {summary.elapsed_wall_time:.2f}s", file=out)
    print(f"Successful: {summary.succeeded}", file=out)
    print(f"Failed: {summary.failed}", file=out)
    print(f"Requests/sec: {summary.requests_per_second:.2f}", file=out)

    # Latency block only when there was at least one sample
    if summary.issued == 0:
        return
    lat = summary.latency
    print("\nLatency:", file=out)
    print(f"  Min: {lat.min * 1000:.2f}ms", file=out)
    print(f"  Avg: {lat.mean * 1000:.2f}ms", file=out)
    print(f"  p50: {lat.p50 * 1000:.2f}ms", file=out)
    print(f"  p95: {lat.p95 * 1000:.2f}ms", file=out)
    print(f"  p99: {lat.p99 * 1000:.2f}ms", file=out)
    print(f"  Max: {lat.max * 1000:.2f}ms", file=out)


def build_report(config: RunConfig, summary: RunSummary,
                 generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    generated_at = generated_at or datetime.now(timezone.utc)
    lat = summary.latency
    return {
        "url": config.target,
        "date": generated_at.isoformat().replace("+00:00", "Z"),
        "total_requests": config.total_requests,
        "concurrency": config.concurrency,
        "total_duration_secs": summary.elapsed_wall_time,
        "successful": summary.succeeded,
        "failed": summary.failed,
        "requests_per_sec": summary.requests_per_second,
        # LatencyStats is all zeros with no samples, so these default to 0.0
        "latency": {
            "avg_ms": lat.mean * 1000,
            "p50_ms": lat.p50 * 1000,
            "p95_ms": lat.p95 * 1000,
            "p99_ms": lat.p99 * 1000,
            "min_ms": lat.min * 1000,
            "max_ms": lat.max * 1000,
        },
    }


def save_report(report: Dict[str, Any], path: str):
    """Write the report as pretty-printed JSON. OSError propagates to the caller."""
    with open(path, 'w') as f:
        json.dump(report, f, indent=2)
    logger.info(f"Report saved to {path}")


def load_report(path: str) -> Dict[str, Any]:
    with open(path) as f:
        return json.load(f)


def summary_from_report(report: Dict[str, Any]) -> RunSummary:
    latency = report.get("latency", {})
    ms = {field: float(latency.get(field, 0.0)) / 1000 for field in LATENCY_FIELDS}
    successful = int(report["successful"])
    failed = int(report["failed"])
    return RunSummary(
        issued=successful + failed,
        succeeded=successful,
        failed=failed,
        elapsed_wall_time=float(report["total_duration_secs"]),
        requests_per_second=float(report["requests_per_sec"]),
        latency=LatencyStats(
            min=ms["min_ms"], max=ms["max_ms"], mean=ms["avg_ms"],
            p50=ms["p50_ms"], p95=ms["p95_ms"], p99=ms["p99_ms"],
        ),
    )
