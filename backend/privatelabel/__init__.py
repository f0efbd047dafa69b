# backend/privatelabel/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, mail, migrate
from .logging_config import configure_logging


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    if app.config.get("TESTING") and "MAIL_SUPPRESS_SEND" not in (test_config or {}):
        app.config["MAIL_SUPPRESS_SEND"] = True

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Domain event subscribers
    from .services import client_service
    client_service.register_event_handlers()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.clients import clients_bp
    from .routes.labels import labels_bp
    from .routes.orders import orders_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(labels_bp)
    app.register_blueprint(orders_bp)

    # Fire-and-forget side effects queued during the request
    from .services.outbox_service import dispatch_after_response
    app.after_request(dispatch_after_response)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
