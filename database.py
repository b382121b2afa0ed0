"""
Database configuration and initialization for the Lecturer Attendance Management System
"""

import logging
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Initialize SQLAlchemy instance
db = SQLAlchemy()

@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def init_db(app):
    """Initialize database with application context"""
    with app.app_context():
        # Import all models to ensure they are registered
        import models  # noqa: F401

        db.create_all()
        create_default_admin_user(app)
        logger.info("Database initialized")

def create_default_admin_user(app):
    """Create default administrator for initial access"""
    from models.user import User, UserRole

    email = app.config['DEFAULT_ADMIN_EMAIL']
    if User.query.filter_by(role=UserRole.ADMIN).first():
        return

    admin = User(
        email=email,
        first_name='System',
        last_name='Administrator',
        role=UserRole.ADMIN,
    )
    admin.set_password(app.config['DEFAULT_ADMIN_PASSWORD'])

    try:
        db.session.add(admin)
        db.session.commit()
        logger.info("Default administrator created: %s", email)
    except Exception as e:
        db.session.rollback()
        logger.error("Error creating default administrator: %s", e)

def reset_database(app):
    """Reset database - WARNING: This will delete all data"""
    with app.app_context():
        import models  # noqa: F401

        db.drop_all()
        db.create_all()
        create_default_admin_user(app)
        logger.warning("Database reset completed")

class DatabaseError(Exception):
    """Custom exception for database operations"""
    pass

def handle_db_error(func):
    """Decorator to roll back the session and wrap unexpected database errors"""
    from functools import wraps
    from utils.errors import ServiceError

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ServiceError:
            db.session.rollback()
            raise
        except Exception as e:
            db.session.rollback()
            raise DatabaseError(f"Database operation failed: {str(e)}") from e
    return wrapper
