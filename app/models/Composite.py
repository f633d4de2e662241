import uuid
from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import UUID

from app.extensions import db


class BeforeAfterComposite(db.Model):
    __tablename__ = 'before_after_composites'

    id = db.Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    before_photo_id = db.Column(UUID(as_uuid=True), db.ForeignKey('photos.id', ondelete='SET NULL'), nullable=True)
    after_photo_id = db.Column(UUID(as_uuid=True), db.ForeignKey('photos.id', ondelete='SET NULL'), nullable=True)
    before_photo_url = db.Column(db.String(1024), nullable=False)
    after_photo_url = db.Column(db.String(1024), nullable=False)
    before_photo_score = db.Column(db.Integer, nullable=False, default=0)
    after_photo_score = db.Column(db.Integer, nullable=False, default=0)

    composite_url = db.Column(db.String(1024), nullable=False)
    caption = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    job_id = db.Column(db.String(64), nullable=True, index=True)
    similarity_score = db.Column(db.Integer, nullable=True)

    facebook_post_id = db.Column(db.String(128), nullable=True)
    instagram_post_id = db.Column(db.String(128), nullable=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    posting_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    before_photo = db.relationship('Photo', foreign_keys=[before_photo_id])
    after_photo = db.relationship('Photo', foreign_keys=[after_photo_id])

    @property
    def total_score(self) -> int:
        return (self.before_photo_score or 0) + (self.after_photo_score or 0)

    @property
    def posted_to_facebook(self) -> bool:
        return bool(self.facebook_post_id)

    @property
    def posted_to_instagram(self) -> bool:
        return bool(self.instagram_post_id)

    @property
    def is_posted(self) -> bool:
        return self.posted_at is not None

    def __repr__(self):
        return f"<BeforeAfterComposite {self.id} job={self.job_id} score={self.total_score}>"
