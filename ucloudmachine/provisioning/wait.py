"""Bounded, cancellable polling."""

import logging
import threading

from ucloudmachine.provisioning.config import DEFAULT_WAIT_ATTEMPTS, DEFAULT_WAIT_INTERVAL
from ucloudmachine.provisioning.errors import WaitCancelledError, WaitTimeoutError

logger = logging.getLogger(__name__)


def wait_for(predicate, max_attempts=DEFAULT_WAIT_ATTEMPTS, interval=DEFAULT_WAIT_INTERVAL, cancel_event=None, description="condition"):
    """Call *predicate* until it returns True.

    Sleeps *interval* seconds between attempts (never after the last one).
    An interval of 0 does not sleep at all.

    Args:
        cancel_event: optional ``threading.Event``; once set, polling stops
            at the next check or sleep.

    Returns:
        The 1-based attempt number on which the predicate succeeded.

    Raises:
        WaitTimeoutError: *max_attempts* evaluations all returned False.
        WaitCancelledError: *cancel_event* was set.
    """
    cancel_event = cancel_event or threading.Event()

    for attempt in range(1, max_attempts + 1):
        if cancel_event.is_set():
            raise WaitCancelledError(description, attempt - 1)
        if predicate():
            return attempt
        if attempt == max_attempts:
            break
        logger.debug(f"Waiting for {description} (attempt {attempt}/{max_attempts}), retrying in {interval}s")
        if interval > 0 and cancel_event.wait(interval):
            raise WaitCancelledError(description, attempt)

    raise WaitTimeoutError(description, max_attempts)
