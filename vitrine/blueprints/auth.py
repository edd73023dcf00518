"""
Authentication blueprint.
Handles login, logout, current session and password reset.
"""

from flask import Blueprint, session, g, jsonify, current_app
import logging

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError, AuthenticationRequired
from vitrine.services.auth_service import authenticate, check_admin_role, reset_password
from vitrine.utils.request_data import get_payload

logger = logging.getLogger(__name__)


auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Start a session for valid credentials."""
    db_session = get_session()
    payload = get_payload()
    email = (payload.get('email') or '').strip()
    password = payload.get('password') or ''

    if not email or not password:
        raise BusinessLogicError('Email e senha são obrigatórios')

    user = authenticate(db_session, email, password)
    if not user:
        logger.info(f"[AUTH] Failed login for {email}")
        raise AuthenticationRequired('Email ou senha inválidos')

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    is_admin = check_admin_role(db_session, user.id)
    current_app.logger.info(f"[AUTH] Login user_id={user.id} admin={is_admin}")
    return jsonify({
        'status': 'success',
        'user': {'id': user.id, 'email': user.email, 'full_name': user.full_name},
        'is_admin': is_admin,
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'status': 'success'})


@auth_bp.route('/me', methods=['GET'])
def me():
    """Current session context."""
    return jsonify(g.session_ctx.to_dict())


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password_request():
    """
    Email a temporary password.

    Answers success for unknown emails too, so addresses cannot be probed.
    """
    payload = get_payload()
    reset_password(get_session(), payload.get('email'))
    return jsonify({
        'status': 'success',
        'message': 'Se o email estiver cadastrado, você receberá uma senha temporária.',
    })
