"""Main blueprint - service health."""
from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from betterbeing.database import get_session
from betterbeing.services.cache_service import get_cache

main_bp = Blueprint('main', __name__, url_prefix='/api')


@main_bp.route('/health', methods=['GET'])
def health():
    """Liveness plus a database round trip."""
    session = get_session()
    try:
        session.execute(text('SELECT 1'))
        database = 'ok'
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.error(f"Health check database error: {e}")
        database = 'unavailable'

    status_code = 200 if database == 'ok' else 503
    return jsonify({
        'status': 'ok' if status_code == 200 else 'degraded',
        'database': database,
        'cache': 'ok' if get_cache().is_available() else 'disabled',
    }), status_code
