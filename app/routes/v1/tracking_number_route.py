# routes/tracking_number_route.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.TrackingNumber import TrackingNumber
from app.schemas.content_schema import TrackingNumberSchema
from app.security_utils import audit_log
from app.utils.decorator import admin_required
from app.utils.logging_utils import get_logger
from app.utils.model_utils import tracking_number_utils
from app.utils.model_utils.base import delete_instance, get_instance

tracking_number_bp = Blueprint("tracking_number_bp", __name__)

tracking_number_schema = TrackingNumberSchema()
tracking_numbers_schema = TrackingNumberSchema(many=True)
logger = get_logger("route")


def _save(tn, event):
    """Flush, enforce the single default, commit.  Returns an error response or ``None``."""
    try:
        db.session.add(tn)
        db.session.flush()
        if tn.is_default:
            tracking_number_utils.clear_other_defaults(tn)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "channel_key already exists"}), 409
    audit_log(event, user_id=get_jwt_identity(), detail=f"channel_key={tn.channel_key}")
    return None


@tracking_number_bp.route("/tracking-numbers", methods=["GET"])
def list_active_tracking_numbers():
    return jsonify(tracking_numbers_schema.dump(tracking_number_utils.list_tracking_numbers(active_only=True))), 200


@tracking_number_bp.route("/admin/tracking-numbers", methods=["GET"])
@admin_required
def list_all_tracking_numbers():
    return jsonify(tracking_numbers_schema.dump(tracking_number_utils.list_tracking_numbers())), 200


@tracking_number_bp.route("/admin/tracking-numbers", methods=["POST"])
@admin_required
def create_tracking_number():
    tn = tracking_number_schema.load(request.get_json(silent=True) or {})
    error = _save(tn, "tracking_number.create")
    if error:
        return error
    logger.info("Tracking number created channel=%s default=%s", tn.channel_key, tn.is_default)
    return jsonify(tracking_number_schema.dump(tn)), 201


@tracking_number_bp.route("/admin/tracking-numbers/<int:tn_id>", methods=["PUT"])
@admin_required
def update_tracking_number(tn_id):
    tn = get_instance(TrackingNumber, tn_id)
    if tn is None:
        return jsonify({"error": "Tracking number not found"}), 404
    tn = tracking_number_schema.load(request.get_json(silent=True) or {}, instance=tn, partial=True)
    error = _save(tn, "tracking_number.update")
    if error:
        return error
    return jsonify(tracking_number_schema.dump(tn)), 200


@tracking_number_bp.route("/admin/tracking-numbers/<int:tn_id>", methods=["DELETE"])
@admin_required
def delete_tracking_number(tn_id):
    if not delete_instance(TrackingNumber, tn_id, actor_id=get_jwt_identity(), event_name="tracking_number.delete"):
        return jsonify({"error": "Tracking number not found"}), 404
    return jsonify({"message": "Tracking number deleted"}), 200


@tracking_number_bp.route("/admin/tracking-numbers/seed", methods=["POST"])
@admin_required
def seed_tracking_numbers():
    created = tracking_number_utils.seed_tracking_numbers()
    if not created:
        return jsonify({"message": "Tracking numbers already exist", "seeded": 0}), 200
    audit_log("tracking_number.seed", user_id=get_jwt_identity(), detail=f"count={len(created)}")
    return jsonify({
        "message": f"Seeded {len(created)} tracking numbers",
        "seeded": len(created),
        "tracking_numbers": tracking_numbers_schema.dump(created),
    }), 201
