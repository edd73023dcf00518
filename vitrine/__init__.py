"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException
from vitrine.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.ensure_ascii = False

    # CSRF protection (JSON clients send X-CSRFToken)
    csrf = CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'A sessão expirou. Recarregue a página.'}), 400

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            profiles_sample_rate=0.1,  # 10% for profiling
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for password reset emails
    from vitrine.services.email_service import init_mail
    init_mail(app)

    # Redis cache for public catalog reads
    from vitrine.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from vitrine.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production' or app.config.get('FLASK_ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,      # Trust X-Forwarded-For with 1 proxy
            x_proto=1,    # Trust X-Forwarded-Proto
            x_host=1,     # Trust X-Forwarded-Host
            x_port=1,     # Trust X-Forwarded-Port
            x_prefix=0    # No prefix (not behind a URL prefix)
        )

    # Initialize database
    init_db(app)

    # Load user and admin flag before each request
    from vitrine.middleware import load_session_context

    @app.before_request
    def before_request_handler():
        load_session_context()

    # Error Handlers
    from vitrine.exceptions import VitrineError

    @app.errorhandler(VitrineError)
    def handle_vitrine_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"VitrineError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"VitrineError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Não encontrado'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        message = str(error) if str(error).startswith('Erro') else 'Erro interno do servidor'
        return jsonify({'status': 'error', 'message': message}), 500

    # Register blueprints
    from vitrine.blueprints.auth import auth_bp
    from vitrine.blueprints.catalog import catalog_bp
    from vitrine.blueprints.products import products_bp
    from vitrine.blueprints.categories import categories_bp
    from vitrine.blueprints.attributes import attributes_bp
    from vitrine.blueprints.customers import customers_bp
    from vitrine.blueprints.coupons import coupons_bp
    from vitrine.blueprints.sales import sales_bp
    from vitrine.blueprints.settings import settings_bp
    from vitrine.blueprints.dashboard import dashboard_bp
    from vitrine.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(attributes_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(metrics_bp)

    # Public storefront is read by anonymous browsers without a CSRF token
    csrf.exempt(catalog_bp)

    # CLI commands
    from vitrine.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
