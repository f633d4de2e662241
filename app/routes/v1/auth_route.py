# routes/auth_route.py

from datetime import datetime, timezone

from flask import Blueprint, request, jsonify
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    get_jwt,
    jwt_required,
    set_access_cookies,
    set_refresh_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.models.User import User
from app.schemas.user_schema import LoginSchema, UserSchema
from app.security_utils import audit_log, ip_and_path_key, rate_limit
from app.utils.decorator import current_user, is_whitelisted_admin
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import token_utils

auth_bp = Blueprint("auth_bp", __name__)
admin_session_bp = Blueprint("admin_session_bp", __name__)

login_schema = LoginSchema()
user_schema = UserSchema()
logger = get_logger("auth")


def _optional_jwt():
    """Claims of a valid token on the request, or ``None``."""
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError):
        return None
    return get_jwt() or None


def _block_current(claims):
    if not claims or not claims.get("jti"):
        return
    token_utils.block_token(
        claims["jti"],
        datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        user_id=claims.get("sub"),
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@auth_bp.route("/login", methods=["POST"])
@rate_limit(ip_and_path_key, limit=10, window_sec=300)
def login():
    data = login_schema.load(request.get_json(silent=True) or {})
    with log_context(module="auth_route", action="login"):
        try:
            user = User.authenticate(data["identifier"], data["password"])
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Database error during login")
            return jsonify({"error": "Database error occurred"}), 500

        if user is None:
            audit_log("login_failed", detail=f"identifier={data['identifier'][:64]}")
            logger.warning("Login failed identifier=%s", data["identifier"])
            return jsonify({"error": "invalid_credentials"}), 401

        identity = str(user.id)
        access_token = create_access_token(identity=identity)
        refresh_token = create_refresh_token(identity=identity)
        audit_log("login", user_id=identity)
        logger.info("Login succeeded user_id=%s", identity)

        resp = jsonify({
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": user_schema.dump(user),
            "is_admin": is_whitelisted_admin(user),
        })
        set_access_cookies(resp, access_token)
        set_refresh_cookies(resp, refresh_token)
        return resp, 200


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    _block_current(claims)
    audit_log("logout", user_id=claims.get("sub"))
    resp = jsonify({"message": "Logged out"})
    unset_jwt_cookies(resp)
    return resp, 200


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user = current_user()
    if user is None:
        return jsonify({"error": "auth_required"}), 401
    payload = user_schema.dump(user)
    payload["is_admin"] = is_whitelisted_admin(user)
    return jsonify(payload), 200


@admin_session_bp.route("/check", methods=["GET"])
def admin_check():
    claims = _optional_jwt()
    if not claims:
        return jsonify({"is_admin": False}), 200
    return jsonify({"is_admin": is_whitelisted_admin(current_user())}), 200


@admin_session_bp.route("/clear-session", methods=["GET", "POST"])
def clear_session():
    """Drop whatever admin session the browser holds, valid or not."""
    claims = _optional_jwt()
    _block_current(claims)
    if claims:
        audit_log("session_cleared", user_id=claims.get("sub"))
    resp = jsonify({"message": "Session cleared"})
    unset_jwt_cookies(resp)
    return resp, 200
