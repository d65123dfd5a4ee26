"""
Core module containing exceptions and error classification.
"""

from ui_explorer.core.exceptions import (
    UIExplorerError,
    RetryableError,
    ConfigurationError,
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
    is_retryable,
    get_retry_delay,
)
from ui_explorer.core.error_classifier import (
    ErrorSeverity,
    ErrorClassification,
    MultipleMatch,
    classify_error,
    is_blocking_error,
    is_skippable_error,
    parse_multiple_match,
)

__all__ = [
    "UIExplorerError",
    "RetryableError",
    "ConfigurationError",
    "BrowserError",
    "NavigationError",
    "ActionError",
    "ElementNotFoundError",
    "MultipleMatchError",
    "BrowserCrashedError",
    "LLMError",
    "LLMResponseError",
    "APILLMError",
    "APIConnectionError",
    "APIRateLimitError",
    "APIAuthenticationError",
    "is_retryable",
    "get_retry_delay",
    "ErrorSeverity",
    "ErrorClassification",
    "MultipleMatch",
    "classify_error",
    "is_blocking_error",
    "is_skippable_error",
    "parse_multiple_match",
]
