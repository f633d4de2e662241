# routes/content_route.py
"""Blog posts and service-area landing pages."""

from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.Content import BlogPost, ServiceArea
from app.schemas.content_schema import BlogPostSchema, ServiceAreaSchema
from app.security_utils import audit_log
from app.utils.decorator import admin_required
from app.utils.model_utils import content_utils
from app.utils.model_utils.base import delete_instance, get_instance

content_bp = Blueprint("content_bp", __name__)

blog_post_schema = BlogPostSchema()
blog_posts_schema = BlogPostSchema(many=True)
service_area_schema = ServiceAreaSchema()
service_areas_schema = ServiceAreaSchema(many=True)


def _commit(instance, event, label):
    try:
        db.session.add(instance)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "slug already exists"}), 409
    audit_log(event, user_id=get_jwt_identity(), detail=f"{label}={instance.slug}")
    return None


# ─── Blog ─────────────────────────────────────

@content_bp.route("/blog", methods=["GET"])
def list_blog_posts():
    posts = content_utils.list_published_posts(category=request.args.get("category"))
    return jsonify(blog_posts_schema.dump(posts)), 200


@content_bp.route("/blog/categories", methods=["GET"])
def list_blog_categories():
    return jsonify(content_utils.blog_categories()), 200


@content_bp.route("/blog/<slug>", methods=["GET"])
def get_blog_post(slug):
    post = content_utils.get_post_by_slug(slug)
    if post is None:
        return jsonify({"error": "Blog post not found"}), 404
    return jsonify(blog_post_schema.dump(post)), 200


@content_bp.route("/admin/blog", methods=["POST"])
@admin_required
def create_blog_post():
    post = blog_post_schema.load(request.get_json(silent=True) or {})
    error = _commit(post, "blog.create", "slug")
    if error:
        return error
    return jsonify(blog_post_schema.dump(post)), 201


@content_bp.route("/admin/blog/<int:post_id>", methods=["PUT"])
@admin_required
def update_blog_post(post_id):
    post = get_instance(BlogPost, post_id)
    if post is None:
        return jsonify({"error": "Blog post not found"}), 404
    post = blog_post_schema.load(request.get_json(silent=True) or {}, instance=post, partial=True)
    error = _commit(post, "blog.update", "slug")
    if error:
        return error
    return jsonify(blog_post_schema.dump(post)), 200


@content_bp.route("/admin/blog/<int:post_id>", methods=["DELETE"])
@admin_required
def delete_blog_post(post_id):
    if not delete_instance(BlogPost, post_id, actor_id=get_jwt_identity(), event_name="blog.delete"):
        return jsonify({"error": "Blog post not found"}), 404
    return jsonify({"message": "Blog post deleted"}), 200


# ─── Service areas ─────────────────────────────────────

@content_bp.route("/service-areas", methods=["GET"])
def list_service_areas():
    areas = content_utils.list_service_areas(region=request.args.get("region"))
    return jsonify(service_areas_schema.dump(areas)), 200


@content_bp.route("/service-areas/<slug>", methods=["GET"])
def get_service_area(slug):
    area = content_utils.get_service_area_by_slug(slug)
    if area is None:
        return jsonify({"error": "Service area not found"}), 404
    return jsonify(service_area_schema.dump(area)), 200


@content_bp.route("/admin/service-areas", methods=["POST"])
@admin_required
def create_service_area():
    area = service_area_schema.load(request.get_json(silent=True) or {})
    error = _commit(area, "service_area.create", "slug")
    if error:
        return error
    return jsonify(service_area_schema.dump(area)), 201


@content_bp.route("/admin/service-areas/<int:area_id>", methods=["PUT"])
@admin_required
def update_service_area(area_id):
    area = get_instance(ServiceArea, area_id)
    if area is None:
        return jsonify({"error": "Service area not found"}), 404
    area = service_area_schema.load(request.get_json(silent=True) or {}, instance=area, partial=True)
    error = _commit(area, "service_area.update", "slug")
    if error:
        return error
    return jsonify(service_area_schema.dump(area)), 200
