"""Error taxonomy shared by the engine, the fleet API client and the HTTP layer.

- RemoteError subclasses come from talking to the fleet backend and are the only
  failures the retry wrapper absorbs.
- ValidationError / ParseError are local and fatal to the current operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error - please check your connection"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class FleetEngineError(Exception):
    """Base class for all errors raised by this service."""

    code: str = "ENGINE_ERROR"


class RemoteError(FleetEngineError):
    """A remote call to the fleet backend failed."""

    code = "REMOTE_ERROR"


class NetworkError(RemoteError):
    """No response reached us (connection refused, DNS, timeout...)."""

    code = "NETWORK_ERROR"


class ServerError(RemoteError):
    """The fleet backend answered with a non-2xx status."""

    code = "SERVER_ERROR"

    def __init__(self, status: int, body: Any = None, message: Optional[str] = None):
        self.status = int(status)
        self.body = body
        super().__init__(message or _server_message(self.status, body))


class ValidationError(FleetEngineError):
    """Malformed or incomplete input (e.g. an invalid custom date range)."""

    code = "VALIDATION_ERROR"


class ParseError(FleetEngineError):
    """A value (timestamp, response body) could not be parsed."""

    code = "PARSE_ERROR"


def _server_message(status: int, body: Any) -> str:
    if isinstance(body, dict):
        msg = body.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return f"Server error ({status})"


@dataclass(frozen=True)
class ErrorSummary:
    """Single user-facing summary of a failure."""

    message: str
    status: Optional[int] = None
    code: Optional[str] = None


# PUBLIC_INTERFACE
def summarize_error(exc: BaseException, context: str) -> ErrorSummary:
    """Collapse any failure into one ErrorSummary and log it with its context."""
    if isinstance(exc, ServerError):
        summary = ErrorSummary(message=str(exc), status=exc.status, code=exc.code)
    elif isinstance(exc, NetworkError):
        summary = ErrorSummary(message=NETWORK_ERROR_MESSAGE, code=exc.code)
    elif isinstance(exc, FleetEngineError):
        summary = ErrorSummary(message=str(exc) or UNEXPECTED_ERROR_MESSAGE, code=exc.code)
    else:
        summary = ErrorSummary(message=str(exc) or UNEXPECTED_ERROR_MESSAGE)

    if isinstance(exc, ValidationError):
        # Bad caller input, not a fault: no traceback.
        logger.warning("[%s] %s code=%s", context, summary.message, summary.code)
        return summary
    logger.error(
        "[%s] %s status=%s code=%s",
        context,
        summary.message,
        summary.status,
        summary.code,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return summary
