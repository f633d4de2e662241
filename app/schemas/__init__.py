# schemas/__init__.py

from .user_schema import UserSchema, LoginSchema
from .audit_log_schema import AuditLogSchema
from .photo_schema import PhotoSchema, PhotoCreateSchema, FocalPointSchema, CleanupRequestSchema
from .composite_schema import CompositeSchema, CreateBeforeAfterSchema, MarkPostedSchema, JobRunSchema
from .content_schema import BlogPostSchema, ServiceAreaSchema, TrackingNumberSchema

__all__ = [
    'UserSchema',
    'LoginSchema',
    'AuditLogSchema',
    'PhotoSchema',
    'PhotoCreateSchema',
    'FocalPointSchema',
    'CleanupRequestSchema',
    'CompositeSchema',
    'CreateBeforeAfterSchema',
    'MarkPostedSchema',
    'JobRunSchema',
    'BlogPostSchema',
    'ServiceAreaSchema',
    'TrackingNumberSchema',
]
