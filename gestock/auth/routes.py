"""Authentication routes."""
import logging

import bcrypt
from flask import Blueprint, request, jsonify, current_app
from pydantic import ValidationError
from gestock.auth.errors import (
    AuthError,
    ConflictError,
    InactiveUserError,
    ServerConfigurationError,
    ServiceError,
)
from gestock.auth.password_reset import BCRYPT_ROUNDS, SERVER_CONFIG_MESSAGE
from gestock.auth.validators import assert_active, assert_exists, assert_password_matches
from gestock.database.user_service import UserService
from gestock.database import audit_log
from gestock.database.audit_log import AuditLog
from gestock.validation.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

EMAIL_TAKEN_MESSAGE = 'El email ya está registrado'


def _validation_error(e: ValidationError):
    """400 response naming the first invalid field, without echoing input."""
    first = e.errors()[0]
    field = '.'.join(str(part) for part in first.get('loc', ())) or 'body'
    message = first.get('msg', 'Invalid value').removeprefix('Value error, ')
    return jsonify({'error': 'validation_error', 'message': f"{field}: {message}"}), 400


def _parse(schema):
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return None, (jsonify({'error': 'validation_error', 'message': 'Request body required'}), 400)
    try:
        return schema(**data), None
    except ValidationError as e:
        return None, _validation_error(e)


def _jwt_manager():
    """The access token manager, or a 500 if it has no secret."""
    manager = current_app.config['JWT_MANAGER']
    if not manager.secret:
        logger.critical("Access token secret is not configured")
        raise ServerConfigurationError(SERVER_CONFIG_MESSAGE)
    return manager


def _access_token_response(manager, user):
    token_data = manager.create_token(user)
    token_data['user'] = {'id': user.id, 'name': user.name, 'email': user.email, 'role': user.role}
    return token_data


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an active user and log them in."""
    payload, error_response = _parse(RegisterRequest)
    if error_response:
        return error_response

    manager = _jwt_manager()

    if UserService.find_by_email(payload.email) is not None:
        AuditLog.record(audit_log.REGISTER_FAILED, f'Registration with existing email: {payload.email}',
                        level='WARNING', email=payload.email, ip_address=request.remote_addr,
                        details={'reason': 'email_taken'})
        raise ConflictError(EMAIL_TAKEN_MESSAGE)

    password_hash = bcrypt.hashpw(
        payload.password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode('utf-8')
    user = UserService.create_user(payload.name, payload.email, password_hash, role=payload.role)
    if user is None:
        # Lost a race with a concurrent registration, or the insert failed
        if UserService.find_by_email(payload.email) is not None:
            raise ConflictError(EMAIL_TAKEN_MESSAGE)
        raise RuntimeError(f'Could not create user {payload.email}')

    AuditLog.record(audit_log.REGISTERED, f'User registered: {user.email}',
                    email=user.email, ip_address=request.remote_addr, details={'role': user.role})
    return jsonify(_access_token_response(manager, user)), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint."""
    payload, error_response = _parse(LoginRequest)
    if error_response:
        return error_response

    manager = _jwt_manager()
    user = UserService.find_by_email(payload.email)
    try:
        assert_exists(user)
        assert_password_matches(payload.password, user.password_hash)
        assert_active(user)
    except InactiveUserError:
        AuditLog.record(audit_log.LOGIN_FAILED, f'Login attempt for inactive user: {payload.email}',
                        level='WARNING', email=payload.email, ip_address=request.remote_addr,
                        details={'reason': 'InactiveUserError'})
        return jsonify({'error': 'unauthorized', 'message': 'Usuario inactivo'}), 401
    except AuthError as e:
        AuditLog.record(audit_log.LOGIN_FAILED, f'Failed login attempt for user: {payload.email}',
                        level='WARNING', email=payload.email, ip_address=request.remote_addr,
                        details={'reason': type(e).__name__})
        return jsonify({'error': 'unauthorized', 'message': 'Credenciales inválidas'}), 401

    token_data = _access_token_response(manager, user)
    UserService.update_last_login(user.id)
    AuditLog.record(audit_log.LOGIN, f'User logged in: {user.email}',
                    email=user.email, ip_address=request.remote_addr)
    return jsonify(token_data), 200


@auth_bp.route('/profile', methods=['GET'])
def profile():
    """Profile of the user the bearer token was issued to."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return jsonify({'error': 'unauthorized', 'message': 'Missing or invalid authorization header'}), 401

    user_id = current_app.config['JWT_MANAGER'].get_user_id_from_token(auth_header[7:])
    if user_id is None:
        return jsonify({'error': 'unauthorized', 'message': 'Invalid or expired token'}), 401

    user = UserService.find_by_id(user_id)
    if not user or not user.is_active:
        return jsonify({'error': 'unauthorized', 'message': 'Invalid or expired token'}), 401

    return jsonify(user.to_dict()), 200


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """Request a password reset link."""
    payload, error_response = _parse(ForgotPasswordRequest)
    if error_response:
        return error_response

    service = current_app.config['PASSWORD_RESET_SERVICE']
    try:
        result = service.request_password_reset(payload.email, request.remote_addr)
    except ServiceError as e:
        AuditLog.record(audit_log.RESET_REQUEST_FAILED, f'Password reset request failed for: {payload.email}',
                        level='ERROR', email=payload.email, ip_address=request.remote_addr,
                        details={'cause': type(e.__cause__).__name__ if e.__cause__ else None})
        raise

    AuditLog.record(audit_log.RESET_REQUESTED, f'Password reset requested for: {payload.email}',
                    email=payload.email, ip_address=request.remote_addr)
    return jsonify(result), 200


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    """Reset password using a token from the reset email."""
    payload, error_response = _parse(ResetPasswordRequest)
    if error_response:
        return error_response

    service = current_app.config['PASSWORD_RESET_SERVICE']
    try:
        result = service.reset_password(payload.token, payload.newPassword, request.remote_addr)
    except ServiceError as e:
        AuditLog.record(audit_log.RESET_REJECTED, f'Password reset rejected: {e.message}',
                        level='WARNING', ip_address=request.remote_addr,
                        details={'cause': type(e.__cause__).__name__ if e.__cause__ else None})
        raise

    AuditLog.record(audit_log.RESET_COMPLETED, 'Password reset completed',
                    ip_address=request.remote_addr)
    return jsonify(result), 200
