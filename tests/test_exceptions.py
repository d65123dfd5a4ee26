"""
Tests for the exception hierarchy.
"""

import pytest

from ui_explorer.core.exceptions import (
    ActionError,
    APIAuthenticationError,
    APIConnectionError,
    APILLMError,
    APIRateLimitError,
    BrowserCrashedError,
    BrowserError,
    ElementNotFoundError,
    LLMError,
    LLMResponseError,
    MultipleMatchError,
    NavigationError,
    RetryableError,
    UIExplorerError,
    get_retry_delay,
    is_retryable,
)


class TestExceptionHierarchy:
    """Tests for inheritance relationships."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            BrowserError,
            NavigationError,
            ActionError,
            ElementNotFoundError,
            MultipleMatchError,
            BrowserCrashedError,
            LLMError,
            LLMResponseError,
            APILLMError,
            APIConnectionError,
            APIRateLimitError,
            APIAuthenticationError,
        ],
    )
    def test_all_inherit_from_base(self, exc_class):
        """Every exception should be a UIExplorerError."""
        assert issubclass(exc_class, UIExplorerError)

    def test_action_errors_are_browser_errors(self):
        """Element failures are browser errors."""
        assert issubclass(ElementNotFoundError, ActionError)
        assert issubclass(MultipleMatchError, ActionError)
        assert issubclass(ActionError, BrowserError)

    def test_retryable_markers(self):
        """Transient failures carry the retryable marker; credential failures do not."""
        assert issubclass(NavigationError, RetryableError)
        assert issubclass(APIConnectionError, RetryableError)
        assert issubclass(APIRateLimitError, RetryableError)
        assert not issubclass(APIAuthenticationError, RetryableError)
        assert not issubclass(BrowserCrashedError, RetryableError)


class TestExceptionDetails:
    """Tests for messages and attached details."""

    def test_str_includes_details(self):
        """Details are rendered after the message."""
        error = UIExplorerError("Something broke", details={"step": 3})

        assert str(error) == "Something broke (step=3)"
        assert error.message == "Something broke"

    def test_str_without_details(self):
        """Without details only the message is shown."""
        assert str(UIExplorerError("plain")) == "plain"

    def test_navigation_error_details(self):
        """URL and status code are stored as attributes and details."""
        error = NavigationError("HTTP 404 error", url="https://a.test/x", status_code=404)

        assert error.url == "https://a.test/x"
        assert error.status_code == 404
        assert error.details == {"url": "https://a.test/x", "status_code": 404}

    def test_multiple_match_error(self):
        """Match count is recorded with the selector."""
        error = MultipleMatchError(
            'Selector "button" matched 3 elements',
            selector="button",
            match_count=3,
            action_type="click",
        )

        assert error.match_count == 3
        assert error.selector == "button"
        assert error.details["match_count"] == 3
        assert error.details["action_type"] == "click"

    def test_llm_response_error_truncates_raw(self):
        """Long raw responses are truncated in details but kept whole on the error."""
        raw = "x" * 500
        error = LLMResponseError("bad json", raw_response=raw)

        assert error.raw_response == raw
        assert len(error.details["raw_response"]) == 203
        assert error.details["raw_response"].endswith("...")


class TestRetryHelpers:
    """Tests for retry utility functions."""

    def test_is_retryable(self):
        """Only RetryableError subclasses are retryable."""
        assert is_retryable(APIConnectionError("down"))
        assert is_retryable(NavigationError("timeout"))
        assert not is_retryable(APIAuthenticationError("bad key"))
        assert not is_retryable(ValueError("other"))

    def test_rate_limit_retry_after(self):
        """retry_after on the error wins over the default."""
        error = APIRateLimitError("slow down", retry_after=7.0)

        assert get_retry_delay(error, default=1.0) == 7.0

    def test_default_retry_delay(self):
        """The default applies when the error gives no hint."""
        assert get_retry_delay(APIConnectionError("down"), default=2.5) == 2.5
        assert get_retry_delay(RuntimeError("other"), default=0.5) == 0.5
