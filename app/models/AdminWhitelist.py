from datetime import datetime, timezone

from flask import current_app

from app.extensions import db


class AdminWhitelist(db.Model):
    __tablename__ = 'admin_whitelist'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    email = db.Column(db.String(120), nullable=False, unique=True)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @staticmethod
    def normalize(email):
        return (email or '').strip().lower()

    @classmethod
    def contains(cls, email) -> bool:
        """Whitelisted either in the table or through the ADMIN_WHITELIST setting."""
        normalized = cls.normalize(email)
        if not normalized:
            return False
        configured = {cls.normalize(e) for e in current_app.config.get('ADMIN_WHITELIST') or []}
        if normalized in configured:
            return True
        return cls.query.filter(cls.email == normalized).first() is not None
