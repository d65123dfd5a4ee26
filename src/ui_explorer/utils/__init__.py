"""
Utility modules: logging, metrics and URL helpers.
"""

from ui_explorer.utils.logging import (
    setup_logging,
    get_logger,
    get_logger_with_context,
    reset_logging,
)
from ui_explorer.utils.metrics import Metrics, TimingStats
from ui_explorer.utils.urls import normalize_url, is_same_domain, get_hostname

__all__ = [
    "setup_logging",
    "get_logger",
    "get_logger_with_context",
    "reset_logging",
    "Metrics",
    "TimingStats",
    "normalize_url",
    "is_same_domain",
    "get_hostname",
]
