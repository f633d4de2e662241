from flask import Blueprint, request, jsonify

from app.schemas.audit_log_schema import AuditLogSchema
from app.utils.decorator import admin_required
from app.utils.model_utils import audit_log_utils

audit_log_bp = Blueprint('audit_log_bp', __name__)

audit_logs_schema = AuditLogSchema(many=True)


@audit_log_bp.route('/audit-logs', methods=['GET'])
@admin_required
def get_audit_logs():
    """Paginated audit trail, newest first unless ``dir=asc``."""
    page = max(1, request.args.get('page', 1, type=int))
    page_size = min(max(request.args.get('page_size', 20, type=int), 1), 100)

    items, total = audit_log_utils.page_audit_logs(
        page=page,
        page_size=page_size,
        user_id=request.args.get('user_id'),
        event=request.args.get('event'),
        event_prefix=request.args.get('event_prefix'),
        ascending=request.args.get('dir', 'desc').lower() == 'asc',
    )
    return jsonify({
        'items': audit_logs_schema.dump(items),
        'total': total,
        'page': page,
        'pages': (total + page_size - 1) // page_size,
        'page_size': page_size,
    }), 200
