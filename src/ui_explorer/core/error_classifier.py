"""
Classification of browser driver failures.

Driver errors arrive as exceptions whose only reliable signal is the
message text. This module sorts them into blocking failures (the
session is unusable, exploration must stop) and skippable failures
(this one action did not work, try another).
"""

import re
from dataclasses import dataclass
from enum import Enum

from ui_explorer.core.exceptions import (
    ActionError,
    BrowserCrashedError,
    ElementNotFoundError,
    MultipleMatchError,
    NavigationError,
)


class ErrorSeverity(str, Enum):
    """How an action failure affects the exploration run."""

    BLOCKING = "blocking"
    SKIPPABLE = "skippable"
    UNKNOWN = "unknown"


BLOCKING_PATTERNS = (
    "crashed",
    "disconnected",
    "target closed",
    "session closed",
    "browser has been closed",
    "protocol error",
)

SKIPPABLE_PATTERNS = (
    "timeout",
    "navigation failed",
    "net::",
    "err_connection",
    "element not found",
    "no element matches",
)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")
_MULTIPLE_MATCH = re.compile(r'Selector "([^"]+)" matched (\d+) elements')


@dataclass(frozen=True)
class MultipleMatch:
    """A strict-mode violation parsed out of a driver error."""

    selector: str
    match_count: int


@dataclass(frozen=True)
class ErrorClassification:
    """Result of classifying a driver failure."""

    severity: ErrorSeverity
    message: str
    multiple_match: MultipleMatch | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == ErrorSeverity.BLOCKING

    @property
    def is_skippable(self) -> bool:
        return self.severity == ErrorSeverity.SKIPPABLE


def _message_of(error: BaseException | str) -> str:
    return error if isinstance(error, str) else str(error)


def strip_ansi(text: str) -> str:
    """Remove terminal color codes from a message."""
    return _ANSI_ESCAPE.sub("", text)


def parse_multiple_match(error: BaseException | str) -> MultipleMatch | None:
    """
    Extract selector and match count from a strict-mode violation.

    Args:
        error: Exception or raw error message

    Returns:
        MultipleMatch if the message reports several matches, else None
    """
    if isinstance(error, MultipleMatchError) and error.selector:
        return MultipleMatch(selector=error.selector, match_count=error.match_count)

    match = _MULTIPLE_MATCH.search(strip_ansi(_message_of(error)))
    if match is None:
        return None
    return MultipleMatch(selector=match.group(1), match_count=int(match.group(2)))


def is_blocking_error(error: BaseException | str) -> bool:
    """Check if the failure means the browser session is unusable."""
    if isinstance(error, BrowserCrashedError):
        return True
    message = strip_ansi(_message_of(error)).lower()
    return any(pattern in message for pattern in BLOCKING_PATTERNS)


def is_skippable_error(error: BaseException | str) -> bool:
    """Check if the failure only affects the current action."""
    if isinstance(error, (ElementNotFoundError, MultipleMatchError, NavigationError)):
        return True
    message = strip_ansi(_message_of(error)).lower()
    if any(pattern in message for pattern in SKIPPABLE_PATTERNS):
        return True
    return _MULTIPLE_MATCH.search(strip_ansi(_message_of(error))) is not None


def classify_error(error: BaseException | str) -> ErrorClassification:
    """
    Classify a driver failure.

    Blocking wins over skippable when a message matches both
    (for example a timeout reported after the target closed).

    Args:
        error: Exception or raw error message

    Returns:
        ErrorClassification with severity and parsed details
    """
    message = strip_ansi(_message_of(error))
    multiple = parse_multiple_match(error)

    if is_blocking_error(error):
        severity = ErrorSeverity.BLOCKING
    elif multiple is not None or is_skippable_error(error):
        severity = ErrorSeverity.SKIPPABLE
    elif isinstance(error, ActionError):
        severity = ErrorSeverity.SKIPPABLE
    else:
        severity = ErrorSeverity.UNKNOWN

    return ErrorClassification(
        severity=severity,
        message=message,
        multiple_match=multiple,
    )
