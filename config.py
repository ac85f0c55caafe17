import logging

# General
VERSION = "1.0.0"
LOG_LEVEL = logging.WARNING  # -v on the command line switches to DEBUG
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
LOG_FILE = None  # Set via --log-file; None means stderr only

# CLI defaults
DEFAULT_REQUESTS = 100
DEFAULT_CONCURRENCY = 10
DEFAULT_OUTPUT_FILE = "loadster-report.json"

# HTTP client config
HTTP_TIMEOUT_SECONDS = 30.0  # Enforced by httpx, not by the dispatcher
HTTP_FOLLOW_REDIRECTS = True

# Console output
PROGRESS_LINE_WIDTH = 50  # Outcomes per progress line before " done/total"
