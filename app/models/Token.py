from datetime import datetime, timezone

from app.extensions import db


class Token(db.Model):
    """JWT block-list entry written on logout / clear-session."""
    __tablename__ = 'tokens'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    token_type = db.Column(db.String(20), nullable=False, default='block')
    jti = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)
    revoked = db.Column(db.Boolean, nullable=False, default=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Token jti={self.jti} type={self.token_type}>"
