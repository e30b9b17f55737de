"""Main Flask application."""
import atexit
import os
import logging
from datetime import timedelta
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from gestock.config.loader import Config
from gestock.security.headers import apply_security_headers
from gestock.auth.errors import ServiceError
from gestock.auth.jwt import JWTManager
from gestock.auth.email_notification import EmailNotificationService
from gestock.auth.password_reset import PasswordResetService
from gestock.auth.reset_tokens import ResetTokenCodec
from gestock.auth.token_registry import get_token_registry, shutdown_token_registry
from gestock.auth.routes import auth_bp
from gestock.database.models import configure_database, get_session_local
from gestock.database.connection import init_db
from gestock.database import audit_log
from gestock.database.audit_log import AuditLog
from gestock.database.user_service import UserService


def create_app(config_path: str = None):
    """Create and configure Flask application."""
    app = Flask(__name__)

    # Load configuration
    try:
        config = Config(config_path)
        app.config['GESTOCK_CONFIG'] = config
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        raise

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.info(f"Loaded configuration: {config.to_dict()}")

    CORS(app, origins=config.cors_origins)

    if config.trust_proxy:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)

    apply_security_headers(app)

    # Database
    if config.database_url:
        configure_database(config.database_url)
    init_db()

    missing = config.missing_reset_settings()
    if missing:
        app.logger.critical(
            f"Password reset is not configured ({', '.join(missing)}); "
            "reset requests will fail until it is"
        )
    if config.missing_login_settings():
        app.logger.critical(
            "Access token secret is not configured (server.jwtSecret); "
            "login and registration will fail until it is"
        )

    # Process-wide registry, its sweeper thread starts on creation
    registry = get_token_registry(
        ttl_seconds=config.reset_token_ttl_seconds,
        sweep_interval_seconds=config.reset_sweep_interval_seconds,
    )
    atexit.register(shutdown_token_registry)

    app.config['JWT_MANAGER'] = JWTManager(config.jwt_secret, config.jwt_expiration_hours)
    app.config['PASSWORD_RESET_SERVICE'] = PasswordResetService(
        users=UserService,
        mailer=EmailNotificationService.from_config(config),
        codec=ResetTokenCodec(config.reset_secret),
        registry=registry,
        frontend_url=config.frontend_url,
        token_ttl=timedelta(minutes=config.reset_token_ttl_minutes),
    )

    # Health check endpoint (no auth required)
    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for Docker healthchecks."""
        return jsonify({'status': 'ok'}), 200

    # Close database session after request
    @app.teardown_appcontext
    def close_db(error):
        get_session_local().remove()

    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Error handlers
    @app.errorhandler(ServiceError)
    def service_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'not_found', 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'method_not_allowed', 'message': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"500 Internal Server Error: {request.method} {request.path}")
        AuditLog.record(
            audit_log.SERVER_ERROR,
            f"500 Internal Server Error: {request.method} {request.path}",
            level='ERROR',
            ip_address=request.remote_addr,
            details={'path': request.path, 'method': request.method}
        )
        return jsonify({'error': 'internal_error', 'message': 'Internal server error'}), 500

    return app


if __name__ == '__main__':
    config_path = os.getenv('GESTOCK_CONFIG', 'config.yaml')
    app = create_app(config_path)
    config = app.config['GESTOCK_CONFIG']
    app.run(host=config.host, port=config.port, debug=False)
