from marshmallow import Schema, fields, validate, EXCLUDE
from marshmallow_enum import EnumField

from app.models.Composite import BeforeAfterComposite
from app.models.JobRun import JobRun
from app.models.enumerations import JobRunStatus
from app.extensions import ma


class CompositeSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = BeforeAfterComposite
        include_fk = True

    id = fields.String(dump_only=True)
    before_photo_id = fields.String(dump_only=True)
    after_photo_id = fields.String(dump_only=True)
    total_score = fields.Integer(dump_only=True)
    posted_to_facebook = fields.Boolean(dump_only=True)
    posted_to_instagram = fields.Boolean(dump_only=True)


class CreateBeforeAfterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    job_id = fields.String(required=True, validate=validate.Length(min=1, max=64))


class MarkPostedSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    composite_id = fields.String(required=True, validate=validate.Length(min=1))
    facebook_post_id = fields.String(allow_none=True, load_default=None)
    instagram_post_id = fields.String(allow_none=True, load_default=None)


class JobRunSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = JobRun

    status = EnumField(JobRunStatus, by_value=True)
