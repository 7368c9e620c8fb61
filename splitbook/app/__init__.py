"""
app/__init__.py — create_app(), the only place a Flask app is assembled.

Importing this package has no side effects. Tests build their own app with
create_app("testing"), and Alembic loads the models without starting a server.

Every error leaves the API as {"error": {"code", "message"[, "field"]}}:

  AppError          its own code and status
  ValidationError   MISSING_FIELD, INVALID_FIELD, or the code the schema raised (400)
  SQLAlchemyError   PERSISTENCE_FAILURE (500) after a rollback
  anything else     INTERNAL_ERROR (500); the traceback is logged only
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from splitbook.config import config_by_name, validate_production_config

logger = logging.getLogger(__name__)


class LedgerJSONProvider(DefaultJSONProvider):
    """Amounts are written as two-decimal strings, never JSON numbers."""

    def default(self, o):
        from splitbook.app.money import Money

        if isinstance(o, (Money, Decimal)):
            return str(o)
        return super().default(o)


def create_app(config_name: str = "development") -> Flask:
    """config_name is "development", "testing" or "production"; unknown names fall back to development."""
    app = Flask(__name__)
    app.json = LedgerJSONProvider(app)

    app.config.from_object(config_by_name.get(config_name, config_by_name["development"]))
    if config_name == "production":
        validate_production_config(app)

    _configure_logging(app)

    from splitbook.app.extensions import db, ma

    db.init_app(app)
    ma.init_app(app)

    with app.app_context():
        # Registers every table on db.metadata.
        from splitbook.app.models import (  # noqa: F401
            activity_log,
            expense,
            group,
            membership,
            split,
            user,
        )

        if db.engine.dialect.name == "sqlite":
            _sqlite_savepoints_and_fks(db.engine)

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_dev_cors(app)

    logger.debug("app created config=%s", config_name)
    return app


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("splitbook").setLevel(level)
    app.logger.setLevel(level)


def _sqlite_savepoints_and_fks(engine: Engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _register_blueprints(app: Flask) -> None:
    from splitbook.app.routes.activity import activity_bp
    from splitbook.app.routes.auth import auth_bp
    from splitbook.app.routes.balances import balances_bp
    from splitbook.app.routes.expenses import expenses_bp
    from splitbook.app.routes.groups import groups_bp
    from splitbook.app.routes.users import users_bp

    prefixes = (
        (auth_bp, "/auth"),
        (groups_bp, "/groups"),
        # both /groups/<id>/expenses and /expenses/<id>
        (expenses_bp, ""),
        (balances_bp, "/groups"),
        (users_bp, "/users"),
        (activity_bp, "/activity"),
    )
    for blueprint, prefix in prefixes:
        app.register_blueprint(blueprint, url_prefix="/api/v1" + prefix)


def _error_body(code: str, message: str, field: str | None = None) -> dict:
    body = {"code": code, "message": message}
    if field is not None:
        body["field"] = field
    return {"error": body}


# Messages for ValidationErrors whose text is an error code.
_CODE_MESSAGES = {
    "INVALID_AMOUNT": "Amount must be a non-negative number.",
    "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
    "INVALID_PARTICIPANTS": "participant_ids must be a non-empty list without repeated ids.",
}


def _register_error_handlers(app: Flask) -> None:
    from splitbook.app.errors import AppError, ErrorCode
    from splitbook.app.extensions import db

    known_codes = {value for name, value in vars(ErrorCode).items() if not name.startswith("_")}

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.http_status >= 500:
            db.session.rollback()
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        field, text = _first_validation_message(error.messages)
        if text in known_codes:
            code, text = text, _CODE_MESSAGES.get(text, "Invalid input.")
        elif text.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD
        return jsonify(_error_body(code, text, field)), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("database error: %s", error)
        return jsonify(_error_body(
            ErrorCode.PERSISTENCE_FAILURE,
            "The change could not be saved. No changes were made.",
        )), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.exception("unhandled exception: %s", error)
        return jsonify(_error_body(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please try again later.",
        )), 500


def _first_validation_message(messages) -> tuple[str | None, str]:
    """
    First (field, message) in marshmallow's messages. List fields nest one
    more level by index: {"participant_ids": {0: ["Not a valid integer."]}}.
    """
    field = None
    while isinstance(messages, dict) and messages:
        key, messages = next(iter(messages.items()))
        if field is None and isinstance(key, str) and key != "_schema":
            field = key
    if isinstance(messages, list):
        messages = messages[0] if messages else "Invalid input."
    if isinstance(messages, dict):
        messages = "Invalid input."
    return field, str(messages)


def _register_dev_cors(app: Flask) -> None:
    """Open CORS for local browser clients; only in DEBUG or TESTING."""
    if not (app.config.get("DEBUG") or app.config.get("TESTING")):
        return

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
