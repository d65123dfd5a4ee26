"""
Tests for driver error classification.
"""

from ui_explorer.core.error_classifier import (
    ErrorSeverity,
    classify_error,
    is_blocking_error,
    is_skippable_error,
    parse_multiple_match,
    strip_ansi,
)
from ui_explorer.core.exceptions import (
    ActionError,
    BrowserCrashedError,
    ElementNotFoundError,
    MultipleMatchError,
    NavigationError,
)


class TestBlockingErrors:
    """Errors that end the session."""

    def test_crashed_exception_is_blocking(self):
        """BrowserCrashedError is blocking regardless of message."""
        assert is_blocking_error(BrowserCrashedError("gone"))

    def test_blocking_messages(self):
        """Closed or crashed targets are detected from message text."""
        assert is_blocking_error("Target closed")
        assert is_blocking_error(RuntimeError("Page crashed"))
        assert is_blocking_error("Browser has been closed")
        assert is_blocking_error("Protocol error (Runtime.callFunctionOn)")

    def test_ordinary_failure_not_blocking(self):
        """Element-level failures are not blocking."""
        assert not is_blocking_error(ElementNotFoundError("Element not found"))
        assert not is_blocking_error("Timeout 5000ms exceeded")


class TestSkippableErrors:
    """Errors that only affect the current action."""

    def test_skippable_exceptions(self):
        """Element, multiple match and navigation errors are skippable."""
        assert is_skippable_error(ElementNotFoundError("missing"))
        assert is_skippable_error(MultipleMatchError("many", selector="a", match_count=2))
        assert is_skippable_error(NavigationError("HTTP 500 error"))

    def test_skippable_messages(self):
        """Timeouts and network failures are skippable."""
        assert is_skippable_error("Timeout 30000ms exceeded")
        assert is_skippable_error("net::ERR_NAME_NOT_RESOLVED")
        assert is_skippable_error("No element matches selector")

    def test_unrelated_message_not_skippable(self):
        """Unrecognized messages are not skippable."""
        assert not is_skippable_error("something odd happened")


class TestMultipleMatch:
    """Tests for strict-mode violation parsing."""

    def test_parse_from_message(self):
        """Selector and count are parsed out of the message."""
        match = parse_multiple_match('Selector "button.buy" matched 4 elements')

        assert match is not None
        assert match.selector == "button.buy"
        assert match.match_count == 4

    def test_parse_ignores_ansi_codes(self):
        """Terminal color codes do not break parsing."""
        message = '\x1b[31mSelector "a.nav" matched 2 elements\x1b[0m'

        match = parse_multiple_match(message)

        assert match is not None
        assert match.selector == "a.nav"

    def test_parse_from_exception(self):
        """MultipleMatchError attributes are used directly."""
        error = MultipleMatchError("strict", selector="li", match_count=9)

        match = parse_multiple_match(error)

        assert match is not None
        assert match.match_count == 9

    def test_parse_no_match(self):
        """Other messages yield None."""
        assert parse_multiple_match("Element not found") is None

    def test_strip_ansi(self):
        assert strip_ansi("\x1b[1mbold\x1b[0m") == "bold"


class TestClassifyError:
    """Tests for classify_error."""

    def test_blocking_wins_over_skippable(self):
        """A timeout reported after the target closed is blocking."""
        result = classify_error("Timeout exceeded: target closed")

        assert result.severity == ErrorSeverity.BLOCKING
        assert result.is_blocking
        assert not result.is_skippable

    def test_multiple_match_is_skippable(self):
        """Strict-mode violations are skippable and carry the parsed match."""
        result = classify_error('Selector "a" matched 3 elements')

        assert result.is_skippable
        assert result.multiple_match is not None
        assert result.multiple_match.match_count == 3

    def test_generic_action_error_is_skippable(self):
        """Any ActionError only affects the current action."""
        result = classify_error(ActionError("hover failed: detached"))

        assert result.severity == ErrorSeverity.SKIPPABLE

    def test_unknown_error(self):
        """Unrecognized errors are unknown."""
        result = classify_error(RuntimeError("weird"))

        assert result.severity == ErrorSeverity.UNKNOWN
        assert result.message == "weird"
