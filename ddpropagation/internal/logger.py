"""
Logging utilities for internal use.
Usage:
    import ddpropagation.internal.logger as logger
    log = logger.get_logger(__name__)

    log.warning("failed to encode x-datadog-tags", exc_info=True)

Every logger returned by ``get_logger`` carries a rate limiting filter: a given
call site (``pathname``/``lineno``) is emitted at most once per
``DD_TRACE_LOGGING_RATE`` seconds (60 by default, ``0`` disables the limit).
Skipped records are counted and reported on the next emitted record by
``DDFormatter``, e.g.::

    WARNING failed to encode x-datadog-tags [3 skipped]

Loggers set to ``DEBUG`` are never rate limited.
"""

import collections
import logging
import os
import time
from typing import DefaultDict
from typing import Tuple


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve or create a ``Logger`` instance with consistent behavior for internal use.

    Configure all loggers with a rate limiter filter to prevent excessive logging.
    """
    logger = logging.getLogger(name)
    # addFilter will only add the filter if it is not already present
    logger.addFilter(log_filter)
    logger.propagate = True
    return logger


# Class used for keeping track of a log lines current time bucket and the number of log lines skipped
class LoggingBucket:
    def __init__(self, bucket: float, skipped: int):
        self.bucket = bucket
        self.skipped = skipped

    def __repr__(self):
        return f"LoggingBucket({self.bucket}, {self.skipped})"

    def is_sampled(self, record: logging.LogRecord, rate: float) -> bool:
        """
        Determine if the log line should be sampled based on the rate limit.
        """
        current = time.monotonic()
        if current - self.bucket >= rate:
            self.bucket = current
            record.skipped = self.skipped
            self.skipped = 0
            return True
        self.skipped += 1
        return False


_MINF = float("-inf")

key_type = Tuple[str, int]
# Dict to keep track of the current time bucket per pathname/lineno
_buckets: DefaultDict[key_type, LoggingBucket] = collections.defaultdict(lambda: LoggingBucket(_MINF, 0))

# DEV: `DD_TRACE_LOGGING_RATE=0` means to disable all rate limiting
_rate_limit = int(os.getenv("DD_TRACE_LOGGING_RATE", default=60))


def log_filter(record: logging.LogRecord) -> bool:
    """
    Function used to determine if a log record should be outputted or not (True = output, False = skip).

    Rate limit log records based on the record filename and line number.
    """
    logger = logging.getLogger(record.name)
    # If rate limiting has been disabled or the logger is set to debug, then do not apply any limits
    if not _rate_limit or logger.getEffectiveLevel() == logging.DEBUG:
        return True
    key = (record.pathname, record.lineno)
    return _buckets[key].is_sampled(record, _rate_limit)


class DDFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        skipped = getattr(record, "skipped", 0)
        if skipped:
            skip_str = f" [{skipped} skipped]"
        else:
            skip_str = ""
        return f"{record.levelname} {super().format(record)}{skip_str}"


# setup the default formatter for all ddpropagation loggers
root_logger = logging.getLogger("ddpropagation")
if not root_logger.handlers:
    root_logger.addHandler(logging.StreamHandler())
    root_logger.handlers[0].setFormatter(DDFormatter())
root_logger.propagate = True
