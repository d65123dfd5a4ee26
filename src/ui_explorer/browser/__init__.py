"""
Browser module: the driver interface and its Playwright implementation.
"""

from ui_explorer.browser.driver import (
    ActionOutcome,
    BrowserDriver,
    OutcomeType,
    PageSnapshot,
    StabilityResult,
    detect_action_outcome,
)
from ui_explorer.browser.manager import BrowserManager, create_browser
from ui_explorer.browser.playwright_driver import PlaywrightDriver

__all__ = [
    "ActionOutcome",
    "BrowserDriver",
    "OutcomeType",
    "PageSnapshot",
    "StabilityResult",
    "detect_action_outcome",
    "BrowserManager",
    "create_browser",
    "PlaywrightDriver",
]
