"""CLI logging setup: plain %(message)s format, secrets redacted."""

import logging
import sys

from ucloudmachine.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger for CLI commands.

    Messages go to stdout unprefixed; ``verbose`` enables DEBUG output.
    The redacting filter sits on the handler so records from every logger
    pass through it.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    # httpx logs every request URL, which carries the signed query string
    logging.getLogger("httpx").setLevel(logging.WARNING)
