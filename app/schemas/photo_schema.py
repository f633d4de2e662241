from marshmallow import Schema, fields, validate, EXCLUDE, pre_load

from app.models.Photo import Photo
from app.extensions import ma

_percent = validate.Range(min=0, max=100)


class PhotoSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = Photo
        load_instance = True

    id = fields.String(dump_only=True)
    tags = fields.List(fields.String())
    quality_score = fields.Integer(dump_only=True)
    is_good_quality = fields.Boolean(dump_only=True)
    quality_reason = fields.String(dump_only=True)
    phash = fields.String(dump_only=True)
    is_used = fields.Boolean(dump_only=True)
    used_at = fields.DateTime(dump_only=True)
    fetched_at = fields.DateTime(dump_only=True)


class PhotoCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    photo_url = fields.String(required=True, validate=validate.Length(min=1, max=1024))
    job_id = fields.String(allow_none=True, validate=validate.Length(max=64))
    category = fields.String(allow_none=True)
    description = fields.String(allow_none=True)
    tags = fields.List(fields.String(), load_default=list)
    uploaded_at = fields.DateTime(allow_none=True)

    @pre_load
    def _blank_job_is_none(self, data, **kwargs):
        if isinstance(data, dict) and data.get("job_id") == "":
            data = dict(data, job_id=None)
        return data


class FocalPointSchema(Schema):
    """Both axes are required; ``null`` resets an axis to centred."""

    x = fields.Integer(required=True, allow_none=True, strict=True, validate=_percent)
    y = fields.Integer(required=True, allow_none=True, strict=True, validate=_percent)


class CleanupRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    dry_run = fields.Boolean(load_default=False)
