import json

from marshmallow import fields, validate, EXCLUDE, ValidationError

from app.models.Content import BlogPost, ServiceArea
from app.models.TrackingNumber import TrackingNumber
from app.extensions import ma

_slug = validate.Regexp(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", error="slug must be lowercase words joined by hyphens")


class JSONText(fields.Field):
    """A JSON object stored as text; accepts an object or an encoded string."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        try:
            return json.loads(value)
        except ValueError:
            return {}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError as exc:
                raise ValidationError("must be valid JSON") from exc
        if not isinstance(value, dict):
            raise ValidationError("must be a JSON object")
        return json.dumps(value)


class BlogPostSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = BlogPost
        load_instance = True
        unknown = EXCLUDE

    id = fields.Integer(dump_only=True)
    title = fields.String(required=True, validate=validate.Length(min=1, max=255))
    slug = fields.String(required=True, validate=_slug)
    content = fields.String(required=True, validate=validate.Length(min=1))
    category = fields.String(required=True, validate=validate.Length(min=1, max=100))
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)


class ServiceAreaSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = ServiceArea
        load_instance = True
        unknown = EXCLUDE

    id = fields.Integer(dump_only=True)
    slug = fields.String(required=True, validate=_slug)
    neighborhoods = fields.List(fields.String())
    landmarks = fields.List(fields.String())
    local_pain_points = fields.List(fields.String())
    seasonal_issues = fields.List(fields.String())
    zip_codes = fields.List(fields.String())
    unique_faqs = fields.List(fields.Dict())
    testimonials = fields.List(fields.Dict())
    latitude = fields.Float(allow_none=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(allow_none=True, validate=validate.Range(min=-180, max=180))
    created_at = fields.DateTime(dump_only=True)


class TrackingNumberSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = TrackingNumber
        load_instance = True
        unknown = EXCLUDE

    id = fields.Integer(dump_only=True)
    channel_key = fields.String(required=True, validate=validate.Regexp(r"^[a-z0-9_-]{1,50}$"))
    display_number = fields.String(required=True, validate=validate.Length(min=7, max=30))
    raw_number = fields.String(required=True, validate=validate.Regexp(r"^\d{10,15}$"))
    tel_link = fields.String(required=True, validate=validate.Regexp(r"^tel:\+?\d{10,15}$"))
    detection_rules = JSONText(load_default="{}")
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)
