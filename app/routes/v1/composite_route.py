# routes/composite_route.py

from flask import Blueprint, request, jsonify, send_file
from flask_jwt_extended import get_jwt_identity

from app.extensions import db
from app.schemas.composite_schema import CompositeSchema, CreateBeforeAfterSchema
from app.security_utils import audit_log
from app.services.before_after_composer import download_filename, process_before_after_pairs, render_jpeg
from app.services.errors import PhotoLoadError
from app.utils.decorator import admin_required
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import composite_utils, photo_utils

composite_bp = Blueprint("composite_bp", __name__)

composite_schema = CompositeSchema()
composites_schema = CompositeSchema(many=True)
create_request_schema = CreateBeforeAfterSchema()


@composite_bp.route("/photos/create-before-after", methods=["POST"])
@admin_required
def create_before_after():
    logger = get_logger("composites")
    actor_id = get_jwt_identity()
    job_id = create_request_schema.load(request.get_json(silent=True) or {})["job_id"]
    with log_context(module="composite_route", action="create_before_after", actor_id=actor_id, job_id=job_id):
        photos = photo_utils.photos_for_job(job_id)
        if len(photos) < 2:
            return jsonify({"error": "Need at least 2 photos for this job to create before/after"}), 400

        try:
            composites = composite_utils.save_composites(process_before_after_pairs(photos, job_id), actor_id=actor_id)
        except Exception:
            db.session.rollback()
            logger.exception("Composite creation failed for job %s", job_id)
            return jsonify({"error": "Failed to create before/after composites"}), 500

        audit_log("composite.create", user_id=actor_id, detail=f"job_id={job_id} count={len(composites)}")
        return jsonify({
            "success": True,
            "count": len(composites),
            "composites": composites_schema.dump(composites),
        }), 200


@composite_bp.route("/before-after-composites", methods=["GET"])
def list_composites():
    return jsonify(composites_schema.dump(composite_utils.list_composites())), 200


@composite_bp.route("/before-after-composites/<composite_id>/download", methods=["GET"])
def download_composite(composite_id):
    composite = composite_utils.get_composite(composite_id)
    if composite is None:
        return jsonify({"error": "Composite not found"}), 404
    try:
        image = render_jpeg(composite)
    except PhotoLoadError as exc:
        get_logger("composites").warning("Composite image unavailable id=%s: %s", composite.id, exc.reason)
        return jsonify({"error": "Composite image not found"}), 404
    return send_file(image, mimetype="image/jpeg", as_attachment=True,
                     download_name=download_filename(composite))
