# routes/photo_route.py

import hmac
import traceback

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.schemas.photo_schema import CleanupRequestSchema, FocalPointSchema, PhotoCreateSchema, PhotoSchema
from app.security_utils import audit_log
from app.services.errors import PhotoLoadError
from app.services.photo_analysis import analyze_photo, normalize_category
from app.services.photo_cleanup import execute_photo_cleanup, run_cleanup
from app.utils.decorator import admin_required
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import photo_utils

photo_bp = Blueprint("photo_bp", __name__)

photo_schema = PhotoSchema()
photos_schema = PhotoSchema(many=True)
photo_create_schema = PhotoCreateSchema()
focal_point_schema = FocalPointSchema()
cleanup_request_schema = CleanupRequestSchema()


@photo_bp.route("/photos", methods=["GET"])
def list_public_photos():
    """Good-quality photos for the public gallery."""
    category = request.args.get("category")
    unused = request.args.get("unused", "").lower() == "true"
    photos = photo_utils.list_photos(category=category, status="unused" if unused else None, good_only=True)
    return jsonify(photos_schema.dump(photos)), 200


@photo_bp.route("/admin/photos", methods=["GET"])
@admin_required
def list_admin_photos():
    photos = photo_utils.list_photos(
        category=request.args.get("category"),
        quality=request.args.get("quality"),
        status=request.args.get("status"),
    )
    return jsonify(photos_schema.dump(photos)), 200


@photo_bp.route("/admin/photos", methods=["POST"])
@admin_required
def create_admin_photo():
    logger = get_logger("photos")
    actor_id = get_jwt_identity()
    data = photo_create_schema.load(request.get_json(silent=True) or {})
    data["category"] = normalize_category(data.get("category"))
    with log_context(module="photo_route", action="create_photo", actor_id=actor_id):
        try:
            photo = photo_utils.create_photo(commit=False, actor_id=actor_id, **data)
            analyze_photo(photo)
            db.session.commit()
        except PhotoLoadError as exc:
            db.session.rollback()
            logger.warning("Photo rejected url=%s: %s", data["photo_url"], exc.reason)
            return jsonify({"error": "photo_unavailable", "message": str(exc)}), 400
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Database error while saving photo error=%s", str(e))
            return jsonify({"error": "Database error occurred"}), 500

        audit_log("photo.create", user_id=actor_id, detail=f"photo_id={photo.id} score={photo.quality_score}")
        logger.info("Photo registered id=%s job=%s score=%s", photo.id, photo.job_id, photo.quality_score)
        return jsonify(photo_schema.dump(photo)), 201


@photo_bp.route("/admin/photos/<photo_id>/focal-point", methods=["PUT"])
@admin_required
def update_focal_point(photo_id):
    data = focal_point_schema.load(request.get_json(silent=True) or {})
    photo = photo_utils.get_photo(photo_id)
    if photo is None:
        return jsonify({"error": "Photo not found"}), 404
    photo = photo_utils.update_photo(
        photo,
        actor_id=get_jwt_identity(),
        focal_point_x=data["x"],
        focal_point_y=data["y"],
    )
    return jsonify(photo_schema.dump(photo)), 200


@photo_bp.route("/admin/photos/<photo_id>", methods=["DELETE"])
@admin_required
def delete_admin_photo(photo_id):
    photo = photo_utils.get_photo(photo_id)
    if photo is None:
        return jsonify({"error": "Photo not found"}), 404
    photo_utils.delete_photo(photo, actor_id=get_jwt_identity())
    return jsonify({"message": "Photo deleted"}), 200


@photo_bp.route("/admin/cleanup-similar-photos", methods=["POST"])
@admin_required
def cleanup_similar_photos():
    logger = get_logger("cleanup")
    actor_id = get_jwt_identity()
    options = cleanup_request_schema.load(request.get_json(silent=True) or {})
    with log_context(module="photo_route", action="cleanup_similar_photos", actor_id=actor_id):
        try:
            result = execute_photo_cleanup(dry_run=options["dry_run"], actor_id=actor_id)
        except Exception as e:
            db.session.rollback()
            logger.error("Photo cleanup failed error=%s traceback=%s", str(e), traceback.format_exc())
            return jsonify({"success": False, "error": "Photo cleanup failed"}), 500
        return jsonify(result), 200


def _cron_authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET") or ""
    if not secret:
        return False
    supplied = request.headers.get("X-Cron-Secret", "")
    if not supplied:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            supplied = auth[len("Bearer "):]
    return hmac.compare_digest(supplied.encode(), secret.encode())


@photo_bp.route("/cron/photo-cleanup", methods=["POST"])
def cron_photo_cleanup():
    if not _cron_authorized():
        get_logger("cleanup").warning("Rejected cron call from %s", request.remote_addr)
        return jsonify({"error": "unauthorized"}), 401
    result = run_cleanup()
    if result is None:
        return jsonify({"success": False, "message": "Photo cleanup already in progress"}), 409
    return jsonify(result), 200 if result.get("success") else 500
