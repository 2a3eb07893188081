"""Authentication blueprint - register, login and current user."""
from flask import Blueprint, jsonify, current_app, g

from betterbeing.database import get_session
from betterbeing.middleware import require_auth
from betterbeing.schemas import LoginRequest, RegisterRequest, parse_body
from betterbeing.services import auth_service

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    body = parse_body(RegisterRequest)
    session = get_session()

    user = auth_service.register_user(session, body.email, body.password, body.full_name)
    token = auth_service.issue_token(user)
    return jsonify({'token': token, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    body = parse_body(LoginRequest)
    session = get_session()

    user = auth_service.authenticate(session, body.email, body.password)
    current_app.logger.info(f"User {user.id} logged in")
    return jsonify({'token': auth_service.issue_token(user), 'user': user.to_dict()})


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify(g.user.to_dict())
