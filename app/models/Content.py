from datetime import datetime, timezone

from app.extensions import db


class BlogPost(db.Model):
    __tablename__ = 'blog_posts'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, unique=True)
    content = db.Column(db.Text, nullable=False)
    excerpt = db.Column(db.Text, nullable=True)
    author = db.Column(db.String(100), nullable=False, default='Economy Plumbing')
    publish_date = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    category = db.Column(db.String(100), nullable=False)
    featured_image = db.Column(db.String(1024), nullable=True)
    meta_description = db.Column(db.String(320), nullable=True)
    published = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))


class ServiceArea(db.Model):
    """SEO landing content for one city in the service region."""
    __tablename__ = 'service_areas'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    city_name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), nullable=False, unique=True)
    region = db.Column(db.String(100), nullable=False)
    meta_description = db.Column(db.String(320), nullable=False)
    intro_content = db.Column(db.Text, nullable=False)
    neighborhoods = db.Column(db.JSON, nullable=False, default=lambda: [])
    landmarks = db.Column(db.JSON, nullable=False, default=lambda: [])
    local_pain_points = db.Column(db.JSON, nullable=False, default=lambda: [])
    seasonal_issues = db.Column(db.JSON, nullable=False, default=lambda: [])
    unique_faqs = db.Column(db.JSON, nullable=False, default=lambda: [])
    testimonials = db.Column(db.JSON, nullable=False, default=lambda: [])
    population = db.Column(db.Integer, nullable=True)
    zip_codes = db.Column(db.JSON, nullable=False, default=lambda: [])
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
