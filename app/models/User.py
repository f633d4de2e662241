# models/user.py

import uuid
import bcrypt
import logging
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Enum as SqlEnum
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.enumerations import Role
from app.security_utils import as_utc, password_strong

from ..extensions import db

logger = logging.getLogger("auth")

# --- Constants ---
MAX_FAILED_ATTEMPTS = 5
LOCK_DURATION_HOURS = 1
PASSWORD_EXPIRATION_DAYS = 180


class UserRole(db.Model):
    __tablename__ = "user_roles"
    user_id = db.Column(UUID(as_uuid=True), db.ForeignKey(
        "users.id"), primary_key=True)
    role = db.Column(SqlEnum(Role), nullable=False, primary_key=True)

    user = db.relationship("User", back_populates="role_associations")


class User(db.Model):
    __tablename__ = 'users'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(50), unique=True)
    email = Column(String(120), unique=True)

    password_hash = Column(String(255))
    password_expiration = Column(DateTime(timezone=True))
    last_password_change = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, default=True)
    failed_login_attempts = Column(Integer, default=0)
    lock_until = Column(DateTime(timezone=True))
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(
        timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    role_associations = db.relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan")
    roles = association_proxy("role_associations", "role",
                              creator=lambda role: UserRole(role=role))

    # --- Security Methods ---

    def is_locked(self) -> bool:
        lock_until = as_utc(self.lock_until)
        return bool(lock_until and datetime.now(timezone.utc) < lock_until)

    def lock_account(self):
        self.lock_until = datetime.now(timezone.utc) + timedelta(hours=LOCK_DURATION_HOURS)
        logger.warning("User %s locked until %s", self.id, self.lock_until)

    def increment_failed_logins(self):
        if self.is_locked():
            return
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
            self.lock_account()

    def reset_failed_logins(self):
        self.failed_login_attempts = 0
        self.lock_until = None

    def set_password(self, raw_password: str):
        if not password_strong(raw_password):
            raise ValueError("Password does not meet complexity requirements")
        salt = bcrypt.gensalt()
        self.password_hash = bcrypt.hashpw(raw_password.encode(), salt).decode()
        self.password_expiration = datetime.now(timezone.utc) + timedelta(days=PASSWORD_EXPIRATION_DAYS)
        self.last_password_change = datetime.now(timezone.utc)

    def check_password(self, raw_password: str) -> bool:
        if not raw_password or not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(raw_password.encode(), self.password_hash.encode())
        except ValueError:
            return False

    def is_password_expired(self) -> bool:
        exp = as_utc(self.password_expiration)
        if not exp:
            return False
        return datetime.now(timezone.utc) > exp

    # --- Roles ---

    def has_role(self, role: str) -> bool:
        return role in [r.value for r in self.roles]

    def add_role(self, role: Role):
        if role not in self.roles:
            self.roles.append(role)

    # --- Authentication (Static) ---

    @staticmethod
    def authenticate(identifier: str, password: str):
        user = User.query.filter(
            User.is_active == True,  # noqa: E712
            db.or_(
                User.username == identifier,
                User.email == (identifier or '').strip().lower(),
            )
        ).first()

        if not user or user.is_locked() or not user.check_password(password) or user.is_password_expired():
            if user:
                user.increment_failed_logins()
                db.session.commit()
            return None

        user.last_login = datetime.now(timezone.utc)
        user.reset_failed_logins()
        db.session.commit()
        return user

    def __str__(self):
        return f"<User(username='{self.username}')>"
