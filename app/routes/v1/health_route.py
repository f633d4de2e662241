from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.utils.logging_utils import get_logger

health_bp = Blueprint('health_bp', __name__)


@health_bp.route('/health', methods=['GET'])
def health():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        get_logger('error').error("Health check database failure: %s", e)
        return jsonify({'status': 'degraded', 'database': 'unavailable'}), 503
    return jsonify({
        'status': 'ok',
        'database': 'ok',
        'version': current_app.config.get('APP_VERSION'),
    }), 200
