"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Retry for journal file I/O.

Ledger operations themselves are never retried: every rejection is final for
the operation that raised it. Only the journal's file writes go through here,
where an OSError (a full disk being cleaned up, a lock held by a backup job)
can clear on its own.
"""

import functools
import time

from umbra.logging_config import get_logger

logger = get_logger(__name__)


def retry_on_os_error(max_retries=3, base_delay=0.1, backoff_factor=2.0):
    """
    Retry the decorated call on OSError, sleeping base_delay, then
    base_delay * backoff_factor, and so on between attempts.

    The call is attempted max_retries + 1 times. The last OSError propagates
    to the caller; any other exception propagates at once.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except OSError as e:
                    delay = base_delay * backoff_factor ** attempt
                    logger.warning(
                        "io_retry",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        retry_in=delay,
                        error=str(e),
                    )
                    time.sleep(delay)
            return func(*args, **kwargs)

        return wrapper
    return decorator
