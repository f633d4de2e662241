from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from app.extensions import db
from app.models.AdminWhitelist import AdminWhitelist
from app.models.User import User
from app.models.enumerations import Role
from app.security_utils import coerce_uuid
from app.utils.logging_utils import get_logger

logger = get_logger("auth")


def current_user():
    """Resolve the user behind the active JWT, or None."""
    ident = coerce_uuid(get_jwt_identity())
    if ident is None:
        return None
    return db.session.get(User, ident)


def is_whitelisted_admin(user) -> bool:
    if user is None or not user.is_active:
        return False
    if not (user.has_role(Role.ADMIN.value) or user.has_role(Role.SUPERADMIN.value)):
        return False
    return AdminWhitelist.contains(user.email)


def admin_required(fn):
    """JWT + admin role + whitelisted e-mail."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = current_user()
        if user is None or not user.is_active:
            return jsonify({"error": "auth_required"}), 401
        if not is_whitelisted_admin(user):
            logger.warning("Admin access denied user=%s email=%s", user.id, user.email)
            return jsonify({"error": "forbidden"}), 403
        return fn(*args, **kwargs)
    return wrapper
