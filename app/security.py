from flask import jsonify
from flask_jwt_extended import JWTManager

from app.extensions import db
from app.models.User import User
from app.security_utils import coerce_uuid
from app.utils.logging_utils import get_logger
from app.utils.model_utils.token_utils import is_token_blocked

logger = get_logger("auth")


def init_jwt_callbacks(jwt: JWTManager):
    @jwt.token_in_blocklist_loader
    def is_revoked(jwt_header, jwt_payload):
        return is_token_blocked(jwt_payload.get("jti"))

    @jwt.additional_claims_loader
    def add_claims(identity):
        ident = coerce_uuid(identity)
        user = db.session.get(User, ident) if ident is not None else None
        if not user:
            return {}
        return {"roles": [r.value for r in user.roles]}

    # ==== helpers for consistent behavior ====

    def _auth_required(reason):
        logger.info("JWT rejected: %s", reason)
        return jsonify({
            "error": "auth_required",
            "message": "Please log in",
        }), 401

    # ==== JWT error/edge loaders ====
    @jwt.unauthorized_loader
    def _missing_token(err_msg):
        return _auth_required(err_msg)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _auth_required("expired")

    @jwt.invalid_token_loader
    def _invalid_token(err_msg):
        return _auth_required(err_msg)

    @jwt.revoked_token_loader
    def _revoked_token(jwt_header, jwt_payload):
        return _auth_required("revoked")

    @jwt.needs_fresh_token_loader
    def _needs_fresh(jwt_header, jwt_payload):
        return _auth_required("fresh token required")
