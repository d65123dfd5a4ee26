"""
Exception types raised by ui_explorer.

Every error derives from ``UIExplorerError`` and carries a ``details``
mapping that is rendered after the message. Errors worth retrying mix
in ``RetryableError``; whether an exploration step may be skipped is
decided separately by ``error_classifier``.

    UIExplorerError
        ConfigurationError
        BrowserError
            NavigationError        (retryable)
            ActionError
                ElementNotFoundError
                MultipleMatchError
            BrowserCrashedError
        LLMError
            LLMResponseError
            APILLMError
                APIConnectionError     (retryable)
                APIRateLimitError      (retryable)
                APIAuthenticationError
"""

from typing import Any


def _with(details: dict[str, Any] | None, **extra: Any) -> dict[str, Any]:
    """Copy of ``details`` plus every truthy ``extra`` value."""
    merged = dict(details or {})
    merged.update({key: value for key, value in extra.items() if value})
    return merged


class UIExplorerError(Exception):
    """Base class; ``details`` holds structured context for logs."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({context})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class RetryableError(UIExplorerError):
    """
    Mixin for transient failures.

    ``retry_after`` is the delay in seconds the failing side asked for,
    when it said anything at all.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class ConfigurationError(UIExplorerError):
    """Unreadable config file or settings that fail validation."""


# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------


class BrowserError(UIExplorerError):
    """Browser or page failure without a more specific type."""


class NavigationError(BrowserError, RetryableError):
    """A page failed to load: unreachable, timed out or an HTTP error status."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(
            message,
            _with(details, url=url, status_code=status_code),
            retry_after,
        )
        self.url = url
        self.status_code = status_code


class ActionError(BrowserError):
    """An element interaction (click, fill, select, hover) did not go through."""

    def __init__(
        self,
        message: str,
        selector: str | None = None,
        action_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, _with(details, selector=selector, action_type=action_type))
        self.selector = selector
        self.action_type = action_type


class ElementNotFoundError(ActionError):
    """Nothing matched the selector before the action timeout."""


class MultipleMatchError(ActionError):
    """A strict selector resolved to ``match_count`` elements."""

    def __init__(
        self,
        message: str,
        selector: str | None = None,
        match_count: int = 0,
        action_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        details["match_count"] = match_count
        super().__init__(message, selector, action_type, details)
        self.match_count = match_count


class BrowserCrashedError(BrowserError):
    """The browser, context or page is gone; the run cannot continue."""


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

RAW_RESPONSE_PREVIEW = 200


class LLMError(UIExplorerError):
    """Base class for model-backed decisions."""


class LLMResponseError(LLMError):
    """
    The model replied with something that is not the JSON we asked for.

    The full reply stays on ``raw_response``; ``details`` only keeps a
    preview so log lines stay short.
    """

    def __init__(
        self,
        message: str,
        raw_response: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        preview = raw_response
        if raw_response and len(raw_response) > RAW_RESPONSE_PREVIEW:
            preview = raw_response[:RAW_RESPONSE_PREVIEW] + "..."
        super().__init__(message, _with(details, raw_response=preview))
        self.raw_response = raw_response


class APILLMError(LLMError):
    """The chat completion endpoint returned an error."""


class APIConnectionError(APILLMError, RetryableError):
    """Network failure, timeout or 5xx from the endpoint."""


class APIRateLimitError(APILLMError, RetryableError):
    """HTTP 429; ``retry_after`` mirrors the Retry-After header when present."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, retry_after)


class APIAuthenticationError(APILLMError):
    """Missing or rejected API key."""


def is_retryable(error: Exception) -> bool:
    return isinstance(error, RetryableError)


def get_retry_delay(error: Exception, default: float = 1.0) -> float:
    """Seconds to wait before retrying ``error``: its own hint, else ``default``."""
    hint = getattr(error, "retry_after", None) if is_retryable(error) else None
    return default if hint is None else hint
