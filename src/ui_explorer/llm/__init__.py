"""
LLM module for UI Explorer.

Provides the chat completion client used for escalated navigation
decisions and the prompt template primitive.
"""

from ui_explorer.llm.client import ChatClient
from ui_explorer.llm.prompt_templates import PromptTemplate

__all__ = [
    "ChatClient",
    "PromptTemplate",
]
