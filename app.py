"""
Lecturer Attendance Management System
Main Flask application entry point
"""

import logging

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import HTTPException

from config import Config
from database import DatabaseError, db, init_db
from services.notification_service import mail
from utils.errors import ServiceError

csrf = CSRFProtect()


def configure_logging(app):
    """Root logging from LOG_LEVEL; quiet the scheduler's own chatter"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(DatabaseError)
    def handle_database_error(error):
        app.logger.error("Database error: %s", error)
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'error': error.description}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize extensions with app
    db.init_app(app)
    csrf.init_app(app)
    mail.init_app(app)

    # Register blueprints
    from routes.auth import auth_bp
    from routes.management import management_bp
    from routes.schedules import schedules_bp
    from routes.attendance import attendance_bp
    from routes.verification import verification_bp
    from routes.notifications import notifications_bp
    from routes.audit import audit_bp
    from routes.reports import reports_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    for blueprint in (management_bp, schedules_bp, attendance_bp, verification_bp,
                      notifications_bp, audit_bp, reports_bp):
        app.register_blueprint(blueprint, url_prefix='/api')

    register_error_handlers(app)

    # Initialize database
    init_db(app)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=8000, debug=True, use_reloader=False)
