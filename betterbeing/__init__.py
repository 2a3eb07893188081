"""Flask application factory."""
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from betterbeing.database import init_db
import os


def _is_production(app):
    return app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)

    is_production = _is_production(app)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and is_production:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (degrades to no-op when unavailable)
    from betterbeing.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from betterbeing.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix behind a reverse proxy
    if is_production:
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,      # Trust X-Forwarded-For with 1 proxy
            x_proto=1,    # Trust X-Forwarded-Proto
            x_host=1,     # Trust X-Forwarded-Host
            x_port=1,     # Trust X-Forwarded-Port
            x_prefix=0
        )

    # Initialize database
    init_db(app)

    from betterbeing.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        """Load the bearer token's user for each request."""
        load_current_user()

    # Error Handlers
    from betterbeing.exceptions import StorefrontError, PersistenceError

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"StorefrontError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"StorefrontError [{error.status_code}]: {error.message}")

        body = error.to_dict()
        if isinstance(error, PersistenceError) and not _is_production(app):
            body['detail'] = error.detail
        return jsonify(body), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException) and error.code != 500:
            return jsonify({'status': 'error', 'message': error.description}), error.code

        import traceback
        app.logger.error(f"Unhandled Exception on {request.method} {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")

        message = 'Internal Server Error' if _is_production(app) else str(error)
        return jsonify({'status': 'error', 'message': message}), 500

    # Register blueprints
    from betterbeing.blueprints.auth import auth_bp
    from betterbeing.blueprints.main import main_bp
    from betterbeing.blueprints.catalog import catalog_bp
    from betterbeing.blueprints.cart import cart_bp
    from betterbeing.blueprints.orders import orders_bp
    from betterbeing.blueprints.loyalty import loyalty_bp
    from betterbeing.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(loyalty_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from betterbeing.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
