from __future__ import annotations

from typing import Optional

from app.extensions import db
from app.models.AdminWhitelist import AdminWhitelist
from app.models.User import User
from app.models.enumerations import Role
from app.utils.logging_utils import get_logger

from .base import first_instance

logger = get_logger("auth")


def get_user_by_username_or_email(username: Optional[str], email: Optional[str]) -> Optional[User]:
    filters = []
    if username:
        filters.append(User.username == username)
    if email:
        filters.append(User.email == AdminWhitelist.normalize(email))
    if not filters:
        return None
    return first_instance(User, filters=[db.or_(*filters)])


def whitelist_email(email: str, note: Optional[str] = None) -> AdminWhitelist:
    normalized = AdminWhitelist.normalize(email)
    entry = first_instance(AdminWhitelist, filters=[AdminWhitelist.email == normalized])
    if entry is None:
        entry = AdminWhitelist(email=normalized, note=note)
        db.session.add(entry)
    return entry


def ensure_admin_user(username: str, email: str, password: str, *, superadmin: bool = False) -> User:
    """
    Create (or promote) an admin account and whitelist its e-mail.  The
    password is only set on creation; raises ``ValueError`` on a weak one.
    """
    user = get_user_by_username_or_email(username, email)
    created = user is None
    if created:
        user = User(username=username, email=AdminWhitelist.normalize(email), is_active=True)
        user.set_password(password)
        db.session.add(user)
    user.add_role(Role.ADMIN)
    if superadmin:
        user.add_role(Role.SUPERADMIN)
    whitelist_email(email, note="bootstrap")
    db.session.commit()
    logger.info("Admin account %s username=%s email=%s", "created" if created else "updated", username, user.email)
    return user
