import os
import logging
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from flask import Flask, request, jsonify, send_from_directory
from flask_compress import Compress
from flask_cors import CORS
from marshmallow import ValidationError
from sqlalchemy import inspect
from werkzeug.middleware.proxy_fix import ProxyFix

from app.security_utils import log_structured
from app.utils.logging_utils import get_logger, init_logger

from .commands.log_commands import logs_group
from .commands.pipeline_commands import photos_group, social_group
from .commands.seed_commands import seed_command
from .commands.setup_commands import setup_command
from .commands.user_commands import create_admin, purge_tokens, whitelist_admin

from app.routes import register_blueprints

# Load environment variables from .env file
load_dotenv()

# Import configuration after loading .env
from .config import config, Config
from .extensions import jwt, db, migrate, ma
from .security import init_jwt_callbacks
from .models import *  # noqa: F401,F403  register every table with the metadata
from .tasks import configure_celery


def configure_logging(app):
    log_file = app.config.get('LOG_FILE', '/tmp/home_services_app.log')
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    if not app.logger.handlers:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config.get('LOG_MAX_BYTES', 10485760),  # 10MB default
            backupCount=app.config.get('LOG_BACKUP_COUNT', 5)
        )
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
        )
        file_handler.setFormatter(formatter)
        log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'))
        file_handler.setLevel(log_level)
        app.logger.addHandler(file_handler)

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'))
    app.logger.setLevel(log_level)
    app.logger.info("Logging configured with level: %s", app.config.get('LOG_LEVEL', 'INFO'))

    # Configure categorized loggers using the same application config.
    init_logger(app)

    # Library/module loggers share the app handlers; propagation off avoids duplicates.
    def _wire_logger(name: str, level: int | None = None):
        lg = logging.getLogger(name)
        lg.propagate = False
        lg.handlers = []
        for h in app.logger.handlers:
            lg.addHandler(h)
        lg.setLevel(level if level is not None else app.logger.level)
        app.logger.debug("Logger wired: %s", name)

    # Add here when new modules introduce their own named loggers.
    names_levels = {
        'security_utils': logging.INFO,
        'celery': logging.INFO,
        'PIL': logging.WARNING,
        'urllib3': logging.WARNING,
    }
    # Allow env overrides: APP_LOG_LEVEL_<LOGGER>=DEBUG|INFO|WARNING|ERROR|CRITICAL
    lvl_map = {
        'CRITICAL': logging.CRITICAL,
        'ERROR': logging.ERROR,
        'WARNING': logging.WARNING,
        'INFO': logging.INFO,
        'DEBUG': logging.DEBUG,
        'NOTSET': logging.NOTSET,
    }
    for k, v in os.environ.items():
        if not k.startswith('APP_LOG_LEVEL_'):
            continue
        name = k[len('APP_LOG_LEVEL_'):].strip().lower()
        level = lvl_map.get((v or '').strip().upper())
        if not name or level is None:
            continue
        names_levels[name] = level
    for name, lvl in names_levels.items():
        _wire_logger(name, lvl)


def create_app(config_name=None, overrides=None):
    # Determine configuration based on environment variable or parameter
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    config_class = config.get(config_name, Config)

    app = Flask(__name__)
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    # Initialize configuration-specific setup
    config_class.init_app(app)

    configure_logging(app)
    app.logger.info("Using config: %s", config_class.__name__)
    get_logger("app").info("Application startup with config %s", config_class.__name__)

    # Optional proxy fix: enable when running behind a trusted proxy by setting PROXY_FIX_NUM
    try:
        num_proxies = int(os.environ.get('PROXY_FIX_NUM', '0'))
    except ValueError:
        num_proxies = 0
    if num_proxies > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=num_proxies, x_proto=num_proxies, x_host=num_proxies, x_port=num_proxies, x_prefix=num_proxies)
        app.logger.info("ProxyFix enabled for %d proxies", num_proxies)

    db.init_app(app)
    migrate.init_app(app, db)
    ma.init_app(app)
    jwt.init_app(app)
    init_jwt_callbacks(jwt)
    configure_celery(app)

    app.cli.add_command(create_admin)
    app.cli.add_command(whitelist_admin)
    app.cli.add_command(purge_tokens)
    app.cli.add_command(setup_command)
    app.cli.add_command(seed_command)
    app.cli.add_command(photos_group)
    app.cli.add_command(social_group)
    app.cli.add_command(logs_group)

    # ------------------------------------------------------------------
    # Logging & Access log middleware
    # ------------------------------------------------------------------
    @app.before_request
    def _log_request():
        log_structured("request", method=request.method, path=request.path, ip=request.remote_addr, args=dict(request.args))

    @app.after_request
    def _security_headers(resp):
        resp.headers.setdefault('X-Content-Type-Options', 'nosniff')
        resp.headers.setdefault('X-Frame-Options', 'DENY')
        resp.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        resp.headers.setdefault('Permissions-Policy', 'fullscreen=()')
        # JSON and image responses only; nothing here should run script
        resp.headers.setdefault('Content-Security-Policy', "default-src 'none'; img-src 'self' data:; frame-ancestors 'none'")
        return resp

    # ------------------------------------------------------------------
    # Dynamic DB schema readiness guard
    # If core tables are missing, short-circuit API requests with 503 instead
    # of producing raw ProgrammingError stack traces. Re-checks until ready.
    # ------------------------------------------------------------------
    CORE_TABLES = {"users", "user_roles", "photos", "before_after_composites", "job_runs"}

    @app.before_request
    def _schema_guard():  # pragma: no cover (runtime environment dependent)
        if request.method == 'OPTIONS' or not request.path.startswith('/api/'):
            return
        if request.path == '/api/health' or app.config.get('DB_SCHEMA_READY'):
            return
        present = set(inspect(db.engine).get_table_names())
        if CORE_TABLES.issubset(present):
            app.config['DB_SCHEMA_READY'] = True
            return
        return jsonify({
            'error': 'database_uninitialized',
            'detail': 'Core tables missing. Run: flask setup',
            'missing': sorted(CORE_TABLES - present)
        }), 503

    # ------------------------------------------------------------------
    # Error Handlers (generic safe messages)
    # ------------------------------------------------------------------
    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return jsonify({"error": "validation_error", "details": e.messages}), 400

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify({"error": "not_found"}), 404

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return jsonify({"error": "method_not_allowed"}), 405

    @app.errorhandler(429)
    def _rate_limited(e):
        return jsonify({"error": "rate_limited"}), 429

    @app.errorhandler(500)
    def _server_error(e):
        db.session.rollback()
        get_logger("error").exception("Unhandled server error")
        return jsonify({"error": "internal_server_error"}), 500

    Compress(app)
    CORS(app, origins=app.config.get('CORS_ORIGINS', '*'), supports_credentials=True)
    app.logger.info("Middleware loaded: Compress, CORS")

    # ------------------------------------------------------------------
    # Admin account bootstrap (development only; idempotent)
    # ------------------------------------------------------------------
    if app.config.get('MY_ENVIRONMENT') == 'DEVELOPMENT' and app.config.get('ADMIN_PASSWORD'):
        with app.app_context():
            from app.utils.model_utils.user_utils import ensure_admin_user
            try:
                if {"users", "user_roles", "admin_whitelist"}.issubset(set(inspect(db.engine).get_table_names())):
                    ensure_admin_user(app.config['ADMIN_USERNAME'], app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'])
                else:
                    app.logger.info("Bootstrap skip: user tables missing")
            except Exception as e:
                db.session.rollback()
                app.logger.exception("Admin bootstrap failed: %s", e)

    register_blueprints(app)

    # Stored photos and generated composites are served from their folders
    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    @app.route('/attached_assets/<path:filename>')
    def attached_asset(filename):
        return send_from_directory(app.config['ASSETS_FOLDER'], filename)

    app.logger.info("Flask app created successfully.")
    return app
