"""
Convenience accessors for the categorized logging facility.

Usage:
    from app.utils.logging_utils import get_logger, log_context
    log = get_logger("cleanup")
    with log_context(job="photo_cleanup"):
        log.info("scan started")
"""

from .manager import (
    DEFAULT_CATEGORIES,
    LogCategory,
    LoggerManager,
    archive_logs,
    clear_all_logs,
    clear_log,
    get_log_context,
    get_logger,
    init_logger,
    log_context,
    logger_manager,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "LogCategory",
    "LoggerManager",
    "get_logger",
    "get_log_context",
    "log_context",
    "init_logger",
    "logger_manager",
    "clear_log",
    "clear_all_logs",
    "archive_logs",
]
