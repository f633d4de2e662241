# routes/social_route.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_jwt_identity

from app.extensions import db
from app.schemas.composite_schema import CompositeSchema, JobRunSchema, MarkPostedSchema
from app.services.errors import NoCompositeAvailable, SocialPostError
from app.services.social_scheduler import mark_composite_as_posted, manually_post_best, select_best_composite
from app.utils.decorator import admin_required
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import job_run_utils

social_bp = Blueprint("social_bp", __name__)

composite_schema = CompositeSchema()
mark_posted_schema = MarkPostedSchema()
job_runs_schema = JobRunSchema(many=True)


@social_bp.route("/best-composite", methods=["GET"])
@admin_required
def best_composite():
    composite = select_best_composite()
    if composite is None:
        return jsonify({"error": "No unused composites available"}), 404
    return jsonify(composite_schema.dump(composite)), 200


@social_bp.route("/mark-posted", methods=["POST"])
@admin_required
def mark_posted():
    data = mark_posted_schema.load(request.get_json(silent=True) or {})
    composite = mark_composite_as_posted(
        data["composite_id"],
        facebook_post_id=data["facebook_post_id"],
        instagram_post_id=data["instagram_post_id"],
        actor_id=get_jwt_identity(),
    )
    if composite is None:
        return jsonify({"error": "Composite not found"}), 404
    return jsonify({"success": True, "composite": composite_schema.dump(composite)}), 200


@social_bp.route("/post-best", methods=["POST"])
@admin_required
def post_best():
    logger = get_logger("social")
    actor_id = get_jwt_identity()
    with log_context(module="social_route", action="post_best", actor_id=actor_id):
        try:
            composite, result = manually_post_best(actor_id=actor_id)
        except NoCompositeAvailable as exc:
            return jsonify({"success": False, "error": str(exc)}), 404
        except SocialPostError as exc:
            db.session.rollback()
            return jsonify({"success": False, "error": str(exc), "composite_id": str(exc.composite_id)}), 502
        except Exception:
            db.session.rollback()
            logger.exception("Manual social post crashed")
            return jsonify({"success": False, "error": "Internal server error"}), 500

        return jsonify({
            "success": True,
            "composite_id": str(composite.id),
            "facebook_post_id": result["facebook_post_id"],
            "instagram_post_id": result["instagram_post_id"],
        }), 200


@social_bp.route("/job-runs", methods=["GET"])
@admin_required
def list_job_runs():
    """Recent scheduler ledger rows, newest first."""
    limit = min(max(request.args.get("limit", 50, type=int), 1), 200)
    runs = job_run_utils.list_job_runs(job_name=request.args.get("job_name"), limit=limit)
    return jsonify(job_runs_schema.dump(runs)), 200
