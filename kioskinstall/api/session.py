import logging
from flask import Blueprint, current_app, jsonify, request
from flask_security.decorators import auth_required
from flask_security.utils import current_user
from marshmallow import ValidationError

from kioskinstall.domain.user import UserRole
from kioskinstall.extensions import limiter
from kioskinstall.schemas.session_schema import MockLoginSchema
from kioskinstall.services.auth_service import AuthError, AuthService
from kioskinstall.services.project_store import get_project_store

logger = logging.getLogger(__name__)

session_bp = Blueprint('session', __name__)
login_schema = MockLoginSchema()


def _auth_service():
    return AuthService(get_project_store(), current_app.config.get('MOCK_LOGIN_ENABLED', True))


@session_bp.route('/session/login', methods=['POST'])
@limiter.limit(lambda: current_app.config.get('LOGIN_RATE_LIMIT', '30 per minute'))
def login():
    """
    Role picker sign-in.

    Body: {"role": "ADMIN" | "FIELD_USER"}
    Returns the auth token to send as the Authentication-Token header.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'No data provided'}), 400
    try:
        data = login_schema.load(data)
    except ValidationError as ve:
        return jsonify({'error': 'Validation failed', 'details': ve.messages}), 400

    try:
        token, user = _auth_service().mock_login(UserRole(data['role']))
        return jsonify({'token': token, 'user': user.model_dump(mode='json')}), 200
    except AuthError as e:
        logger.warning(f"Sign-in rejected: {e.message}")
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error during sign-in: {e}", exc_info=True)
        return jsonify({'error': 'Unable to sign in'}), 500


@session_bp.route('/session/logout', methods=['POST'])
@auth_required()
def logout():
    try:
        _auth_service().logout()
        return jsonify({'message': 'Signed out'}), 200
    except Exception as e:
        logger.error(f"Error during sign-out: {e}", exc_info=True)
        return jsonify({'error': 'Unable to sign out'}), 500


@session_bp.route('/session/current', methods=['GET'])
@auth_required()
def current_session():
    """Profile of the most recent sign-in on this device, or null after sign-out."""
    user = _auth_service().current_session_user()
    return jsonify({'user': user.model_dump(mode='json') if user else None}), 200


@session_bp.route('/session/me', methods=['GET'])
@auth_required()
def me():
    try:
        user = AuthService.session_user_for(current_user)
        return jsonify({'user': user.model_dump(mode='json')}), 200
    except AuthError as e:
        return jsonify({'error': e.message}), e.status_code
