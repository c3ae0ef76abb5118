# backend/storefront/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, mail, migrate


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.customers import customers_bp
    from .routes.products import products_bp
    from .routes.cart import cart_bp
    from .routes.windows import windows_bp
    from .routes.settings import settings_bp
    from .routes.promotions import promotions_bp
    from .routes.orders import orders_bp
    from .routes.reviews import reviews_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(windows_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(promotions_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(reviews_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Admin-Token, X-Admin-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def start_background(app: Flask) -> None:
    """
    Serving-process startup: top up delivery windows and start the periodic
    jobs. Called from wsgi.py only, so `flask` CLI commands stay side-effect free.
    """
    if app.config.get("GENERATE_WINDOWS_ON_STARTUP"):
        from .services.windows_service import generate_windows_from_templates
        with app.app_context():
            try:
                generate_windows_from_templates(app.config["WINDOW_DAYS_AHEAD"])
            except Exception:
                app.logger.exception("Generating delivery windows at startup failed")
                db.session.rollback()

    if app.config.get("BACKGROUND_JOBS_ENABLED") and "storefront_jobs" not in app.extensions:
        from .services.jobs import start_background_jobs
        app.extensions["storefront_jobs"] = start_background_jobs(app)
