import logging
import re
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from functools import wraps
from threading import Lock
from typing import Any, Callable, Deque, Dict, Optional

from flask import current_app, has_request_context, jsonify, request

from app.extensions import db

security_logger = logging.getLogger("security_utils")

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$")


def password_strong(raw: str) -> bool:
    """At least 8 chars with upper, lower, digit and symbol."""
    return bool(raw) and bool(_PASSWORD_RE.match(raw))


def coerce_uuid(value: Any) -> Optional[uuid.UUID]:
    """Turn a path/JWT identity into a UUID; ``None`` when it is not one."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def log_structured(event: str, **fields: Any) -> None:
    parts = " ".join(f"{k}={v}" for k, v in fields.items())
    security_logger.info("%s %s", event, parts)


def audit_log(event: str, user_id: Optional[str] = None, target_user_id: Optional[str] = None,
              detail: Optional[str] = None) -> None:
    """Persist an audit row in its own commit."""
    from app.models.AuditLog import AuditLog

    ip = request.remote_addr if has_request_context() else None
    try:
        db.session.add(AuditLog(
            event=event[:64],
            user_id=user_id,
            target_user_id=target_user_id,
            ip=ip,
            detail=AuditLog.validate_detail_format(detail),
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        security_logger.exception("audit_log failed event=%s", event)


# ---------------------------------------------------------------------------
# In-process sliding window rate limiter
# ---------------------------------------------------------------------------
_rate_buckets: Dict[str, Deque[float]] = {}
_rate_lock = Lock()
_last_sweep = 0.0


def ip_and_path_key() -> str:
    return f"{request.remote_addr}:{request.path}"


def reset_rate_limits() -> None:
    global _last_sweep
    with _rate_lock:
        _rate_buckets.clear()
        _last_sweep = 0.0


def _prune(bucket: Deque[float], now: float, window_seconds: int) -> None:
    while bucket and now - bucket[0] > window_seconds:
        bucket.popleft()


def _sweep_idle_buckets(now: float, window_seconds: int) -> None:
    """Drop buckets of clients that went quiet; caller holds ``_rate_lock``."""
    global _last_sweep
    if now - _last_sweep < window_seconds:
        return
    _last_sweep = now
    for key in list(_rate_buckets):
        bucket = _rate_buckets[key]
        _prune(bucket, now, window_seconds)
        if not bucket:
            del _rate_buckets[key]


def rate_limit(key_func: Callable[[], str] = ip_and_path_key, limit: int = 10, window_sec: int = 60):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_app.config.get("RATE_LIMIT_ENABLED", True):
                return fn(*args, **kwargs)
            key = key_func()
            now = time.monotonic()
            with _rate_lock:
                _sweep_idle_buckets(now, window_sec)
                bucket = _rate_buckets.setdefault(key, deque())
                _prune(bucket, now, window_sec)
                if len(bucket) >= limit:
                    log_structured("rate_limited", key=key, limit=limit)
                    return jsonify({"error": "rate_limited"}), 429
                bucket.append(now)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
