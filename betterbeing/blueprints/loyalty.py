"""Loyalty blueprint - balance, ledger, redemption and admin credits."""
from flask import Blueprint, jsonify, current_app, g

from betterbeing.database import get_session
from betterbeing.middleware import require_auth, require_admin
from betterbeing.schemas import AdminPointsRequest, PointsRequest, parse_body
from betterbeing.services import loyalty_service

loyalty_bp = Blueprint('loyalty', __name__, url_prefix='/api/loyalty')


@loyalty_bp.route('/points', methods=['GET'])
@require_auth
def points():
    session = get_session()
    return jsonify({'loyalty_points': loyalty_service.get_balance(session, g.user_id)})


@loyalty_bp.route('/points/add', methods=['POST'])
@require_auth
@require_admin
def add_points():
    """Admin: credit points to a user (defaults to the caller)."""
    body = parse_body(AdminPointsRequest)
    session = get_session()

    target_user_id = body.user_id or g.user_id
    entry = loyalty_service.add_points(session, target_user_id, body.points, body.description)
    current_app.logger.info(f"Admin {g.user_id} credited {body.points} points to user {target_user_id}")
    return jsonify(entry.to_dict()), 201


@loyalty_bp.route('/points/redeem', methods=['POST'])
@require_auth
def redeem_points():
    body = parse_body(PointsRequest)
    session = get_session()

    entry = loyalty_service.redeem_points(session, g.user_id, body.points, body.description)
    return jsonify(entry.to_dict()), 201


@loyalty_bp.route('/transactions', methods=['GET'])
@require_auth
def transactions():
    session = get_session()
    entries = loyalty_service.list_transactions(session, g.user_id)
    return jsonify([entry.to_dict() for entry in entries])
