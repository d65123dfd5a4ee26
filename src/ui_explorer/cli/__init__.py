"""
CLI module for UI Explorer.

Provides command-line interface using Typer:
- explore: Run one exploration against a URL
- config: Show effective configuration
"""

from ui_explorer.cli.main import app

__all__ = ["app"]
