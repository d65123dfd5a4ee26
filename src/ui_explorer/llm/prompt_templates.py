"""
Prompt template primitive shared by the decision layer.

Templates hold a system and a user prompt with ``str.format`` fields;
concrete prompt sets live next to the code that uses them.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class PromptTemplate:
    """
    A reusable prompt template with variable substitution.

    Example:
        >>> template = PromptTemplate(
        ...     name="pick_action",
        ...     system="You explore websites.",
        ...     user="Page: {url}\\nActions:\\n{actions}",
        ... )
        >>> messages = template.format(url="https://example.com", actions="...")
        >>> await client.complete(messages["system"], messages["user"])
    """

    name: str
    system: str
    user: str

    def format(self, **kwargs: Any) -> dict[str, str]:
        """
        Format the template with provided variables.

        Args:
            **kwargs: Variables to substitute

        Returns:
            Dictionary with formatted system and user prompts
        """
        return {
            "system": self.system.format(**kwargs) if kwargs else self.system,
            "user": self.user.format(**kwargs) if kwargs else self.user,
        }
