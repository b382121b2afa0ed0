"""
Authentication service for the Lecturer Attendance Management System
Handles login, password management, and session utilities
"""

import logging
import secrets
from datetime import datetime

from sqlalchemy import func

from database import db
from models.user import User
from services.audit_service import AuditService, AuditAction
from utils.errors import AuthenticationError, NotFoundError, ValidationError
from utils.validators import validate_password

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service class"""

    @staticmethod
    def authenticate(email, password):
        """Authenticate a user by e-mail and password. Returns (success, user, message)."""
        normalized = (email or '').strip()
        if not normalized or not password:
            return False, None, "Email and password are required"

        # Case-insensitive e-mail match
        user = (
            User.query
            .filter(func.lower(User.email) == func.lower(normalized))
            .first()
        )

        if user is None or not user.check_password(password):
            logger.info("Failed login for %s", normalized)
            return False, None, "Invalid email or password"

        if not user.is_active:
            return False, None, "Account is deactivated"

        user.update_last_login()
        AuditService.log(user.id, AuditAction.USER_LOGIN, 'User', user.id)
        return True, user, "Login successful"

    @staticmethod
    def generate_password(length=10):
        """Random password for accounts created without one"""
        return secrets.token_urlsafe(length)[:length]

    @staticmethod
    def change_password(user_id, old_password, new_password):
        """Change a user's password after checking the current one"""
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        if not user.check_password(old_password):
            raise AuthenticationError("Current password is incorrect")

        is_valid, message = validate_password(new_password)
        if not is_valid:
            raise ValidationError(message)

        user.set_password(new_password)
        db.session.commit()

        AuditService.log(user.id, AuditAction.SECURITY_SETTING_CHANGED, 'User', user.id,
                         {'change': 'password'})
        return True, "Password changed successfully"

    @staticmethod
    def get_user(user_id):
        user = db.session.get(User, user_id) if user_id is not None else None
        if user is None or not user.is_active:
            return None
        return user


class SessionManager:
    """Session management utilities"""

    @staticmethod
    def create_session(session, user):
        """Create user session"""
        session.clear()
        session['user_id'] = user.id
        session['role'] = user.role
        session['email'] = user.email
        session['session_id'] = secrets.token_hex(16)
        session['login_time'] = datetime.utcnow().isoformat()
        session.permanent = True

    @staticmethod
    def clear_session(session):
        """Clear user session"""
        session.clear()

    @staticmethod
    def is_authenticated(session):
        """Check if user is authenticated"""
        return 'user_id' in session and 'role' in session

    @staticmethod
    def get_current_user_id(session):
        return session.get('user_id')

    @staticmethod
    def get_session_info(session):
        """Get complete session information"""
        if not SessionManager.is_authenticated(session):
            return None

        return {
            'user_id': session.get('user_id'),
            'role': session.get('role'),
            'email': session.get('email'),
            'login_time': session.get('login_time'),
        }
