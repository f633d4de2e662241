from __future__ import annotations

from typing import List, Optional, Tuple

from app.models.AuditLog import AuditLog

from .base import paginate_instances


def page_audit_logs(
    *,
    page: int = 1,
    page_size: int = 20,
    user_id: Optional[str] = None,
    event: Optional[str] = None,
    event_prefix: Optional[str] = None,
    ascending: bool = False,
) -> Tuple[List[AuditLog], int]:
    filters = []
    if user_id:
        filters.append(AuditLog.user_id == user_id)
    if event:
        filters.append(AuditLog.event == event)
    if event_prefix:
        filters.append(AuditLog.event.startswith(event_prefix))
    order = AuditLog.id.asc() if ascending else AuditLog.id.desc()
    return paginate_instances(AuditLog, page=page, page_size=page_size, filters=filters, order_by=order)
