"""
UI Explorer - autonomous exploration of web application UIs.

Drives a browser through a web application, fingerprinting every UI
state it reaches, tracking coverage and budget, and choosing the next
action with a heuristic-first decision layer that can escalate to an
LLM.
"""

from ui_explorer.config import Settings, load_config
from ui_explorer.utils.logging import setup_logging, get_logger
from ui_explorer.core.exceptions import UIExplorerError
from ui_explorer.exploration import (
    Explorer,
    LLMExplorer,
    create_explorer,
    create_llm_explorer,
)

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_config",
    "setup_logging",
    "get_logger",
    "UIExplorerError",
    "Explorer",
    "LLMExplorer",
    "create_explorer",
    "create_llm_explorer",
]
