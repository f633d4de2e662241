from marshmallow import Schema, fields, validate, EXCLUDE

from app.models.User import User
from app.extensions import ma


class UserSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = User
        load_instance = True
        unknown = EXCLUDE
        exclude = ("password_hash",)

    id = fields.String(dump_only=True)
    username = fields.String(required=True, validate=validate.Length(min=3, max=50))
    email = fields.Email(required=True)
    roles = fields.Method("get_roles", dump_only=True)
    is_active = fields.Boolean(dump_only=True)
    failed_login_attempts = fields.Integer(dump_only=True)
    lock_until = fields.DateTime(dump_only=True)
    last_login = fields.DateTime(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)
    password_expiration = fields.DateTime(dump_only=True)
    last_password_change = fields.DateTime(dump_only=True)

    def get_roles(self, obj):
        return [r.value for r in obj.roles]


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    identifier = fields.String(required=True, validate=validate.Length(min=1, max=120))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))
