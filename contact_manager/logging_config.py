"""Logging setup for the Contact Manager API.

A single stream handler on the root logger, with a filter that masks
credentials before anything reaches the output.
"""

import logging
import re
import sys
import time

from fastapi import Request


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class SensitiveDataFilter(logging.Filter):
    """Mask passwords, bearer tokens and secrets in log records."""

    SENSITIVE_PATTERNS = [
        (r'password["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', 'password": "***"'),
        (r'token["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', 'token": "***"'),
        (r'secret["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', 'secret": "***"'),
        (r"Bearer\s+([^\s\"']+)", "Bearer ***"),
    ]

    def _mask(self, text: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._mask(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def configure_logging(level: str = "INFO"):
    """
    Install the application log handler on the root logger.

    Calling it again replaces the handler instead of stacking a new one.

    Args:
        level (str): Root logging level name.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_contact_manager", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    handler._contact_manager = True
    root.addHandler(handler)
    root.setLevel(level.upper())

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def log_requests(request: Request, call_next):
    """HTTP middleware writing one access line per request."""
    logger = logging.getLogger("contact_manager.access")
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response
