"""
Logging for exploration runs.

Everything logs under the ``ui_explorer`` logger. ``setup_logging``
attaches a console and/or rotating file handler once per process;
explorers tag their messages with the run they belong to through
``get_logger_with_context``.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any, MutableMapping

if TYPE_CHECKING:
    from ui_explorer.config.settings import LoggingSettings


ROOT_LOGGER_NAME = "ui_explorer"

_configured = False


def setup_logging(settings: "LoggingSettings | None" = None) -> logging.Logger:
    """
    Attach handlers to the ``ui_explorer`` logger.

    Only the first call configures anything; later calls return the
    already configured logger unchanged.

    Args:
        settings: Logging section of the configuration, defaults if None

    Returns:
        The ``ui_explorer`` logger
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _configured:
        return root

    if settings is None:
        from ui_explorer.config.settings import LoggingSettings

        settings = LoggingSettings()

    level = logging.getLevelName(settings.level)
    formatter = logging.Formatter(fmt=settings.format, datefmt=settings.date_format)

    handlers: list[logging.Handler] = []
    if settings.log_to_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if settings.file_path is not None:
        settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=str(settings.file_path),
                maxBytes=settings.max_file_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        )

    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # handlers live on ui_explorer only; the root logger would print twice
    root.propagate = False
    _configured = True
    return root


def reset_logging() -> None:
    """Close and detach every handler so ``setup_logging`` runs again."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.propagate = True
    _configured = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Logger for a module, always nested under ``ui_explorer``.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Exploration started")
    """
    if name is None or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Appends ``[key=value]`` tags to every message."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        if not self.extra:
            return msg, kwargs
        tags = " ".join(f"[{key}={value}]" for key, value in self.extra.items())
        return f"{msg} {tags}", kwargs


def get_logger_with_context(name: str | None = None, **context: str) -> LoggerAdapter:
    """
    Logger whose messages carry ``context`` as tags.

    Example:
        >>> log = get_logger_with_context(__name__, run="a1b2c3")
        >>> log.info("Step executed")  # "Step executed [run=a1b2c3]"
    """
    return LoggerAdapter(get_logger(name), context)
