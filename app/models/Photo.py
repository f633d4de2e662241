import uuid
from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import UUID

from app.extensions import db
from app.security_utils import as_utc


class Photo(db.Model):
    """A job-site photo pulled from the field-service CRM or uploaded by staff."""
    __tablename__ = 'photos'

    id = db.Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    photo_url = db.Column(db.String(1024), nullable=False)
    job_id = db.Column(db.String(64), nullable=True, index=True)
    category = db.Column(db.String(50), nullable=False, default='general-plumbing', index=True)
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=lambda: [])

    quality_score = db.Column(db.Integer, nullable=False, default=0)
    is_good_quality = db.Column(db.Boolean, nullable=False, default=False)
    quality_reason = db.Column(db.String(255), nullable=True)
    phash = db.Column(db.String(16), nullable=True)
    width = db.Column(db.Integer, nullable=True)
    height = db.Column(db.Integer, nullable=True)

    # percentages; NULL means centred
    focal_point_x = db.Column(db.Integer, nullable=True)
    focal_point_y = db.Column(db.Integer, nullable=True)

    is_used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fetched_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @property
    def taken_at(self):
        """Upload time, falling back to when the photo was fetched."""
        return as_utc(self.uploaded_at or self.fetched_at)

    def mark_used(self, when=None):
        self.is_used = True
        self.used_at = when or datetime.now(timezone.utc)

    def __repr__(self):
        return f"<Photo {self.id} job={self.job_id} q={self.quality_score}>"
