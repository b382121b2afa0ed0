"""
Authentication routes for the Lecturer Attendance Management System
Handles login, logout, session info and the shared access decorators
"""

from flask import Blueprint, g, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from services.audit_service import AuditService, AuditAction
from services.auth_service import AuthService, SessionManager
from utils.errors import ValidationError
from utils.permissions import get_role_permissions, has_any_permission

auth_bp = Blueprint('auth', __name__)


def json_body():
    """Request JSON as a dict, or a 400 when the body is not an object"""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict() if request.form else {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_arg(name, default=None):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def current_user():
    """Active user for this request, cached on flask.g"""
    if 'current_user' not in g:
        g.current_user = AuthService.get_user(SessionManager.get_current_user_id(session))
    return g.current_user


# Authentication decorators
def login_required(*roles):
    """Decorator to require an authenticated user, optionally of given roles"""
    def decorator(f):
        def decorated_function(*args, **kwargs):
            user = current_user() if SessionManager.is_authenticated(session) else None
            if user is None:
                SessionManager.clear_session(session)
                return jsonify({'error': 'Authentication required'}), 401

            if roles and user.role not in roles:
                return jsonify({'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)

        decorated_function.__name__ = f.__name__
        return decorated_function
    return decorator


def permission_required(*permissions):
    """Decorator to require any one of the given permissions"""
    def decorator(f):
        def decorated_function(*args, **kwargs):
            user = current_user() if SessionManager.is_authenticated(session) else None
            if user is None:
                SessionManager.clear_session(session)
                return jsonify({'error': 'Authentication required'}), 401

            if not has_any_permission(user.role, permissions):
                return jsonify({'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)

        decorated_function.__name__ = f.__name__
        return decorated_function
    return decorator


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login handler"""
    data = json_body()
    success, user, message = AuthService.authenticate(data.get('email', ''), data.get('password', ''))
    if not success:
        return jsonify({'error': message}), 401

    SessionManager.create_session(session, user)
    return jsonify({'message': message, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Logout handler"""
    user_id = SessionManager.get_current_user_id(session)
    if user_id is not None:
        AuditService.log(user_id, AuditAction.USER_LOGOUT, 'User', user_id)
    SessionManager.clear_session(session)
    return jsonify({'message': 'You have been logged out successfully'})


@auth_bp.route('/me')
@login_required()
def me():
    """Current user with role permissions"""
    user = current_user()
    return jsonify({
        'user': user.to_dict(),
        'session': SessionManager.get_session_info(session),
        'permissions': sorted(get_role_permissions(user.role)),
    })


@auth_bp.route('/change-password', methods=['POST'])
@login_required()
def change_password():
    """Change password for authenticated users"""
    data = json_body()
    current_password = data.get('current_password', '')
    new_password = data.get('new_password', '')
    confirm_password = data.get('confirm_password', new_password)

    if not current_password or not new_password:
        raise ValidationError("All password fields are required")
    if new_password != confirm_password:
        raise ValidationError("New passwords do not match")

    _, message = AuthService.change_password(current_user().id, current_password, new_password)
    return jsonify({'message': message})


@auth_bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})
