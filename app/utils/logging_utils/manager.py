from __future__ import annotations

import json
import logging
import os
import zipfile
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from flask import Flask, current_app


_RESERVED_RECORD_FIELDS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def _resolve_app_logger() -> Optional[logging.Logger]:
    try:
        return current_app.logger
    except RuntimeError:
        return None


def get_log_context() -> Dict[str, Any]:
    """Return a shallow copy of the active contextual logging fields."""

    return dict(_log_context.get())


@contextmanager
def log_context(**fields: Any):
    """Temporarily add contextual fields to every record logged inside the block."""

    updated = dict(_log_context.get())
    updated.update({k: v for k, v in fields.items() if v is not None})
    token = _log_context.set(updated)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextAwareFormatter(logging.Formatter):
    """Text or JSON formatter that appends the active log context."""

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        *,
        json_format: bool = False,
        static_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(fmt=fmt or "[%(asctime)s] %(levelname)s %(name)s - %(message)s", datefmt=datefmt)
        self.json_format = json_format
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)

        line = super().format(record)
        context = _log_context.get()
        if context:
            line = f"{line} | " + " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        return line

    def _format_json(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS or key.startswith("_") or key in payload:
                continue
            payload[key] = value

        context = _log_context.get()
        if context:
            payload["context"] = dict(context)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, separators=(",", ":"))


@dataclass(frozen=True)
class LogCategory:
    """A logical log stream backed by its own file."""

    name: str
    filename: str


DEFAULT_CATEGORIES: Dict[str, LogCategory] = {
    "app": LogCategory("app", "application.log"),
    "auth": LogCategory("auth", "auth.log"),
    "route": LogCategory("route", "route.log"),
    "photos": LogCategory("photos", "photos.log"),
    "cleanup": LogCategory("cleanup", "photo_cleanup.log"),
    "composites": LogCategory("composites", "composites.log"),
    "social": LogCategory("social", "social.log"),
    "tasks": LogCategory("tasks", "tasks.log"),
    "model_utils": LogCategory("model_utils", "model_utils.log"),
    "error": LogCategory("error", "errors.log"),
}


class LoggerManager:
    """
    Hands out one logger per category, each with a timed-rotating file, an
    optional shared console handler, and the Flask app handlers mirrored in.
    Old files can be zipped into an archive directory or deleted.
    """

    def __init__(
        self,
        *,
        base_dir: Optional[str] = None,
        rotation_when: str = "midnight",
        backup_count: int = 7,
        archive_dir: Optional[str] = None,
        categories: Optional[Dict[str, LogCategory]] = None,
        default_level: int = logging.INFO,
        enable_console: bool = True,
        json_format: bool = False,
        mirror_app_handlers: bool = True,
        static_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._base_dir = base_dir
        self._rotation_when = rotation_when
        self._backup_count = backup_count
        self._archive_dir = archive_dir
        self._categories = dict(categories or DEFAULT_CATEGORIES)
        self._default_level = default_level
        self._enable_console = enable_console
        self._json_format = json_format
        self._mirror_app_handlers = mirror_app_handlers
        self._static_fields = dict(static_fields or {})
        self._loggers: Dict[str, logging.Logger] = {}
        self._console_handler: Optional[logging.Handler] = None

    @property
    def base_dir(self) -> Path:
        return Path(self._base_dir or os.getenv("LOGGING_BASE_DIR", "/tmp/home_services_logs"))

    @property
    def archive_dir(self) -> Path:
        return Path(self._archive_dir) if self._archive_dir else self.base_dir / "archive"

    def register_category(self, name: str, filename: Optional[str] = None) -> LogCategory:
        key = name.strip().lower()
        spec = LogCategory(key, filename or f"{key}.log")
        existing = self._categories.get(key)
        if existing and existing.filename != spec.filename:
            self._detach_logger(key)
        self._categories[key] = spec
        return spec

    def get_logger(self, category: str) -> logging.Logger:
        key = category.lower()
        if key in self._loggers:
            return self._loggers[key]

        spec = self._categories.get(key) or self.register_category(key)
        logger = logging.getLogger(f"app.{spec.name}")
        logger.propagate = False
        logger.setLevel(self._default_level)

        self.base_dir.mkdir(parents=True, exist_ok=True)
        handler = TimedRotatingFileHandler(
            self.base_dir / spec.filename,
            when=self._rotation_when,
            backupCount=self._backup_count,
            encoding="utf-8",
            delay=True,
            utc=True,
        )
        handler.setFormatter(self._formatter())
        logger.addHandler(handler)

        if self._enable_console:
            logger.addHandler(self._ensure_console_handler())

        app_logger = _resolve_app_logger()
        if self._mirror_app_handlers and app_logger is not None:
            for app_handler in app_logger.handlers:
                if app_handler not in logger.handlers:
                    logger.addHandler(app_handler)

        self._loggers[key] = logger
        return logger

    def categories_in_use(self) -> List[str]:
        return list(self._loggers)

    def _formatter(self) -> ContextAwareFormatter:
        return ContextAwareFormatter(json_format=self._json_format, static_fields=self._static_fields)

    def _ensure_console_handler(self) -> logging.Handler:
        if self._console_handler is None:
            self._console_handler = logging.StreamHandler()
            self._console_handler.setFormatter(self._formatter())
        return self._console_handler

    def _iter_log_files(self, categories: Optional[Iterable[str]] = None) -> Sequence[Path]:
        if not self.base_dir.exists():
            return []
        if categories is None:
            return sorted(self.base_dir.glob("*.log*"))

        matched: List[Path] = []
        for category in categories:
            spec = self._categories.get(category.lower())
            if spec is not None:
                matched.extend(sorted(self.base_dir.glob(f"{spec.filename}*")))
        return matched

    def clear_log(self, category: str) -> List[Path]:
        key = category.lower()
        reopen = key in self._loggers
        self._detach_logger(key)
        removed = self._unlink_all(self._iter_log_files([key]))
        if reopen:
            self.get_logger(key)
        return removed

    def clear_all_logs(self) -> List[Path]:
        reopen = list(self._loggers)
        for key in reopen:
            self._detach_logger(key)
        removed = self._unlink_all(self._iter_log_files())
        for key in reopen:
            self.get_logger(key)
        return removed

    @staticmethod
    def _unlink_all(paths: Iterable[Path]) -> List[Path]:
        deleted: List[Path] = []
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            deleted.append(path)
        return deleted

    def archive_logs(self, *, older_than_days: int, destination_dir: Optional[str] = None) -> List[Path]:
        """Zip each log file untouched for ``older_than_days`` and remove the original."""
        if older_than_days < 0:
            raise ValueError("older_than_days must be non-negative")

        dest_dir = Path(destination_dir) if destination_dir else self.archive_dir
        dest_dir.mkdir(parents=True, exist_ok=True)
        cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")

        stale: List[Path] = []
        for log_path in self._iter_log_files():
            try:
                mtime = datetime.fromtimestamp(log_path.stat().st_mtime, tz=timezone.utc)
            except FileNotFoundError:
                continue
            if mtime <= cutoff:
                stale.append(log_path)
        if not stale:
            return []

        # open handlers would keep writing to the unlinked file
        reopen = list(self._loggers)
        for key in reopen:
            self._detach_logger(key)

        archives: List[Path] = []
        for log_path in stale:
            archive_name = dest_dir / f"{log_path.name}_{stamp}.zip"
            # mtimes before 1980 are clamped instead of rejected
            with zipfile.ZipFile(archive_name, mode="w", compression=zipfile.ZIP_DEFLATED,
                                 strict_timestamps=False) as zf:
                zf.write(log_path, arcname=log_path.name)
            log_path.unlink(missing_ok=True)
            archives.append(archive_name)

        for key in reopen:
            self.get_logger(key)
        return archives

    def shutdown(self) -> None:
        for key in list(self._loggers):
            self._detach_logger(key)
        if self._console_handler is not None:
            self._console_handler.close()
            self._console_handler = None

    def _detach_logger(self, key: str) -> None:
        logger = self._loggers.pop(key, None)
        if logger is None:
            return
        app_logger = _resolve_app_logger()
        shared = set(app_logger.handlers) if app_logger is not None else set()
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            if handler is not self._console_handler and handler not in shared:
                handler.close()


def _to_level(value: Optional[Any], *, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        numeric = getattr(logging, value.strip().upper(), None)
        if isinstance(numeric, int):
            return numeric
    return default


_manager: Optional[LoggerManager] = None


def init_logger(app: Flask) -> LoggerManager:
    """Configure the shared logger manager from the Flask application config."""

    global _manager

    manager = LoggerManager(
        base_dir=app.config.get("LOGGING_BASE_DIR"),
        rotation_when=app.config.get("LOGGING_ROTATION_WHEN", "midnight"),
        backup_count=int(app.config.get("LOGGING_ROTATION_BACKUP_COUNT", 7)),
        archive_dir=app.config.get("LOGGING_ARCHIVE_DIR"),
        default_level=_to_level(app.config.get("LOG_LEVEL")),
        enable_console=bool(app.config.get("LOGGING_CONSOLE_ENABLED", True)),
        json_format=bool(app.config.get("LOGGING_JSON_FORMAT", False)),
        static_fields={"app": app.config.get("APP_NAME"), "env": app.config.get("MY_ENVIRONMENT")},
    )

    # service modules grab their loggers at import time; move them onto the new handlers
    handed_out = list(_manager.categories_in_use()) if _manager is not None else []
    shutdown_logger()
    _manager = manager
    for category in handed_out:
        manager.get_logger(category)
    return _manager


def logger_manager() -> LoggerManager:
    global _manager
    if _manager is None:
        _manager = LoggerManager(
            enable_console=os.getenv("LOGGING_CONSOLE_ENABLED", "true").lower() in {"1", "true", "yes", "on"},
            json_format=os.getenv("LOGGING_JSON_FORMAT", "false").lower() in {"1", "true", "yes", "on"},
            default_level=_to_level(os.getenv("LOG_LEVEL")),
        )
    return _manager


def shutdown_logger() -> None:
    global _manager
    if _manager is None:
        return
    _manager.shutdown()
    _manager = None


def get_logger(category: str) -> logging.Logger:
    return logger_manager().get_logger(category)


def clear_log(category: str) -> List[Path]:
    return logger_manager().clear_log(category)


def clear_all_logs() -> List[Path]:
    return logger_manager().clear_all_logs()


def archive_logs(older_than_days: int, *, destination_dir: Optional[str] = None) -> List[Path]:
    return logger_manager().archive_logs(older_than_days=older_than_days, destination_dir=destination_dir)
