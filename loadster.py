import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

import config
from benchmark_driver import run_http_benchmark
from metrics import RunConfig
from report import ProgressPrinter, build_report, print_header, print_summary, save_report

logger = logging.getLogger("loadster")

DESCRIPTION = """\
A lightweight HTTP load testing tool that sends concurrent requests
and reports latency statistics including p50, p95, and p99 percentiles.

Example:
  loadster https://example.com -n 200 -c 20
"""


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> Optional[logging.Handler]:
    """Configure the root logger; returns the file handler so the caller can close it.

    When the root logger already has handlers (an embedding app or test runner),
    only the level is adjusted and the file handler is attached alongside them.
    """
    level = logging.DEBUG if verbose else config.LOG_LEVEL
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
    else:
        # stderr keeps stdout free for the report itself
        logging.basicConfig(level=level, format=config.LOG_FORMAT,
                            handlers=[logging.StreamHandler(sys.stderr)])

    if not log_file:
        return None
    file_handler = logging.FileHandler(log_file, mode='w')
    file_handler.setFormatter(logging.Formatter(config.LOG_FORMAT))
    root.addHandler(file_handler)
    return file_handler


def close_file_handler(handler: Optional[logging.Handler]):
    if handler is None:
        return
    logging.getLogger().removeHandler(handler)
    handler.close()


def url_arg(value: str) -> str:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise argparse.ArgumentTypeError(f"invalid URL '{value}': {e}")
    if url.scheme not in ("http", "https") or not url.host:
        raise argparse.ArgumentTypeError(f"invalid URL '{value}': must include http:// or https:// and a host")
    return value


def non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value '{value}': expected an integer")
    if n < 0:
        raise argparse.ArgumentTypeError(f"invalid value '{value}': must be >= 0")
    return n


def positive_int(value: str) -> int:
    n = non_negative_int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"invalid value '{value}': must be >= 1")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadster",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", metavar="URL", type=url_arg,
                        help="URL to test (must include http:// or https://)")
    parser.add_argument("-n", "--requests", type=non_negative_int, default=config.DEFAULT_REQUESTS,
                        help=f"Total number of requests to send (default: {config.DEFAULT_REQUESTS})")
    parser.add_argument("-c", "--concurrency", type=positive_int, default=config.DEFAULT_CONCURRENCY,
                        help=f"Number of requests to run concurrently (default: {config.DEFAULT_CONCURRENCY})")
    parser.add_argument("-o", "--output", metavar="FILE", default=config.DEFAULT_OUTPUT_FILE,
                        help=f"Output file path for JSON report (default: {config.DEFAULT_OUTPUT_FILE})")
    parser.add_argument("--no-report", action="store_true",
                        help="Do not write the JSON report")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debug output to stderr")
    parser.add_argument("--log-file", metavar="FILE", default=config.LOG_FILE,
                        help="Also write log output to FILE")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {config.VERSION}")
    return parser


def write_report(run_config: RunConfig, summary, path: str) -> bool:
    try:
        save_report(build_report(run_config, summary), path)
    except OSError as e:
        logger.info(f"Report write to {path} failed: {e}")
        print(f"\n✗ Failed to save report: {e}", file=sys.stderr)
        return False
    print(f"\n✓ Report saved to: {path}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    file_handler = setup_logging(args.verbose, args.log_file)
    try:
        return run(args)
    finally:
        close_file_handler(file_handler)


def run(args: argparse.Namespace) -> int:
    run_config = RunConfig(target=args.url, total_requests=args.requests, concurrency=args.concurrency)
    print_header(run_config)

    progress = ProgressPrinter(run_config.total_requests)
    try:
        summary = asyncio.run(run_http_benchmark(run_config, on_outcome=progress))
    except KeyboardInterrupt:
        progress.finish()
        logger.info("Run interrupted by user (Ctrl+C).")
        print("\nInterrupted.", file=sys.stderr)
        return 130
    progress.finish()

    print_summary(summary)
    if not args.no_report:
        write_report(run_config, summary, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
