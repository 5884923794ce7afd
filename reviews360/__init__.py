"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
import os

from reviews360.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # CSRF protection for the cookie-session API
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Your session has expired. Reload the page.'}), 400

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Prometheus metrics instrumentation
    from reviews360.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load the signed-in principal before each request
    from reviews360.middleware import load_principal

    @app.before_request
    def before_request_handler():
        load_principal()

    # Error Handlers
    from reviews360.exceptions import ReviewsError, InvitationError

    @app.errorhandler(ReviewsError)
    def handle_reviews_error(error):
        """Handle custom application exceptions."""
        if isinstance(error, InvitationError):
            app.logger.info(f"InvitationError [{error.status_code}] reason={error.reason} path={request.path}")
        else:
            app.logger.info(f"{error.__class__.__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from reviews360.blueprints.auth import auth_bp
    from reviews360.blueprints.invitations import invitations_bp
    from reviews360.blueprints.areas import areas_bp
    from reviews360.blueprints.users import users_bp
    from reviews360.blueprints.admin import admin_bp
    from reviews360.blueprints.permissions import permissions_bp
    from reviews360.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(areas_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(permissions_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from reviews360.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"SIGNUP_MODE={app.config.get('SIGNUP_MODE')}")

    return app
