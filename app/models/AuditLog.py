import json
from datetime import datetime, timezone

from app.extensions import db


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)  # actor
    target_user_id = db.Column(db.String(64), nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    detail = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @staticmethod
    def validate_detail_format(detail):
        """
        Strings are stored as given; other objects are JSON encoded, falling
        back to ``str`` when they are not serializable.
        """
        if detail is None or isinstance(detail, str):
            return detail
        try:
            return json.dumps(detail)
        except (TypeError, ValueError):
            return str(detail)
