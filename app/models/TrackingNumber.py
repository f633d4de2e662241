import json
from datetime import datetime, timezone

from app.extensions import db


class TrackingNumber(db.Model):
    """Call-tracking phone number shown to visitors arriving from one marketing channel."""
    __tablename__ = 'tracking_numbers'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    channel_key = db.Column(db.String(50), nullable=False, unique=True)
    channel_name = db.Column(db.String(100), nullable=False)
    display_number = db.Column(db.String(30), nullable=False)
    raw_number = db.Column(db.String(20), nullable=False)
    tel_link = db.Column(db.String(40), nullable=False)
    detection_rules = db.Column(db.Text, nullable=False, default='{}')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    @property
    def rules(self) -> dict:
        try:
            return json.loads(self.detection_rules or '{}')
        except ValueError:
            return {}
