"""Application factory for the memorial site."""

from __future__ import annotations

import logging

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from .config import get_config
from .errors import MemorialError
from .extensions import csrf, db, login_manager, migrate
from .routes import api_bp


def create_app(config_name: str | None = None) -> Flask:
    """Build and configure the Flask application instance."""
    app = Flask(__name__)
    config_obj = get_config(config_name)
    app.config.from_object(config_obj)
    app.logger.setLevel(resolve_log_level(app.config.get("LOG_LEVEL")))

    register_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)

    return app


def resolve_log_level(name: str | None) -> int:
    """Map a level name to its number, falling back to ``INFO``."""
    level = logging.getLevelName(str(name or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def register_extensions(app: Flask) -> None:
    """Initialize application extensions."""
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    # Registers the user loader and unauthorized handler.
    from . import auth  # noqa: F401


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""
    app.register_blueprint(api_bp)


def register_error_handlers(app: Flask) -> None:
    """Render failures as ``{"error": kind, "message": ...}`` JSON."""

    @app.errorhandler(MemorialError)
    def handle_memorial_error(exc: MemorialError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", exc.kind, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(exc: CSRFError):
        return (
            jsonify({"error": "csrf_error", "message": exc.description}),
            400,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        if not request.path.startswith(api_bp.url_prefix or "/api"):
            return exc
        kind = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": kind, "message": exc.description}), exc.code
