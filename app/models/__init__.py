from .enumerations import Role, JobRunStatus, PhotoCategory
from .User import User, UserRole
from .Token import Token
from .AdminWhitelist import AdminWhitelist
from .AuditLog import AuditLog
from .Photo import Photo
from .Composite import BeforeAfterComposite
from .JobRun import JobRun
from .Content import BlogPost, ServiceArea
from .TrackingNumber import TrackingNumber

__all__ = [
    'Role',
    'JobRunStatus',
    'PhotoCategory',
    'User',
    'UserRole',
    'Token',
    'AdminWhitelist',
    'AuditLog',
    'Photo',
    'BeforeAfterComposite',
    'JobRun',
    'BlogPost',
    'ServiceArea',
    'TrackingNumber',
]
