from flask import Flask

from app.routes.v1.audit_log_route import audit_log_bp
from app.routes.v1.auth_route import admin_session_bp, auth_bp
from app.routes.v1.composite_route import composite_bp
from app.routes.v1.content_route import content_bp
from app.routes.v1.health_route import health_bp
from app.routes.v1.photo_route import photo_bp
from app.routes.v1.social_route import social_bp
from app.routes.v1.tracking_number_route import tracking_number_bp


def register_blueprints(app: Flask):
    app.register_blueprint(auth_bp, url_prefix='/api/v1/auth')
    app.register_blueprint(admin_session_bp, url_prefix='/api/admin')
    app.register_blueprint(audit_log_bp, url_prefix='/api/admin')
    app.register_blueprint(photo_bp, url_prefix='/api')
    app.register_blueprint(composite_bp, url_prefix='/api')
    app.register_blueprint(social_bp, url_prefix='/api/social-media')
    app.register_blueprint(tracking_number_bp, url_prefix='/api')
    app.register_blueprint(content_bp, url_prefix='/api')
    app.register_blueprint(health_bp, url_prefix='/api')
    app.logger.info("Blueprints registered")
