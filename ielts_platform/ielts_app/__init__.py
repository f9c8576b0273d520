"""ielts_app package – application factory and blueprint registration."""

from __future__ import annotations

import os
from time import perf_counter

import click
from flask import Flask, g, request
from flask_jwt_extended import JWTManager
from sqlalchemy import event

from config import resolve_config
from .blueprints import BLUEPRINTS
from .extensions import cors, db, jwt, migrate, limiter
from .logging_config import configure_logging, assign_request_id
from .metrics import record_request
from .utils import hash_password


def create_app(config_name: str | None = None) -> Flask:
    """Application factory used by both CLI and runtime servers."""

    app = Flask(__name__)
    _configure_app(app, config_name)
    configure_logging(app)
    _register_extensions(app)
    _register_blueprints(app)
    _register_shellcontext(app)
    _register_cli(app)
    _register_bootstrap(app)
    _register_request_hooks(app)

    return app


def _configure_app(app: Flask, config_name: str | None) -> None:
    env_name = config_name or os.getenv("FLASK_CONFIG")
    config_obj = resolve_config(env_name)
    app.config.from_object(config_obj)


def _register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    _configure_jwt(jwt)
    _configure_sqlite_engine(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )
    limiter.default_limits = app.config.get("RATE_LIMIT_DEFAULTS", [])
    limiter.init_app(app)


def _register_blueprints(app: Flask) -> None:
    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)


def _register_shellcontext(app: Flask) -> None:
    # Lazy import inside function to avoid circular dependencies.
    from . import models

    @app.shell_context_processor
    def shell_context():
        return {"db": db, "User": models.User, "GeneratedTest": models.GeneratedTest}


def _configure_jwt(jwt_manager: JWTManager) -> None:
    from flask import jsonify

    from .models import User

    @jwt_manager.user_lookup_loader
    def user_lookup_callback(_jwt_header, jwt_data):
        identity = jwt_data.get("sub")
        if identity is None:
            return None
        try:
            identity_int = int(identity)
        except (TypeError, ValueError):
            return None
        return db.session.get(User, identity_int)

    @jwt_manager.user_lookup_error_loader
    def user_lookup_error_callback(_jwt_header, _jwt_data):
        return jsonify({"error": "Unauthorized", "message": "User not found"}), 401

    @jwt_manager.expired_token_loader
    def expired_token_callback(jwt_header, jwt_data):
        return jsonify({"error": "Unauthorized", "message": "Token has expired"}), 401

    @jwt_manager.invalid_token_loader
    def invalid_token_callback(error_string):
        return jsonify({"error": "Unauthorized", "message": error_string}), 401

    @jwt_manager.unauthorized_loader
    def missing_token_callback(error_string):
        return jsonify({"error": "Unauthorized", "message": "Missing authorization token"}), 401


def _register_bootstrap(app: Flask) -> None:
    @app.before_request
    def ensure_schema():
        if app.config.get("_SCHEMA_READY") or not app.config.get("AUTO_CREATE_SCHEMA"):
            return
        db.create_all()
        app.config["_SCHEMA_READY"] = True


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def start_request():
        assign_request_id()
        g.request_started_at = perf_counter()

    @app.after_request
    def finalize(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        started = getattr(g, "request_started_at", None)
        latency = perf_counter() - started if started else 0.0
        endpoint = request.endpoint or request.path
        record_request(request.method, endpoint, response.status_code, latency)
        return response


def _configure_sqlite_engine(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not uri.startswith("sqlite") or ":memory:" in uri:
        return
    busy_timeout_ms = int(app.config.get("SQLITE_BUSY_TIMEOUT_MS", 15000))

    with app.app_context():
        engine = db.engine

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):  # pragma: no cover
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms};")
                cursor.execute("PRAGMA synchronous=NORMAL;")
            finally:
                cursor.close()


def _register_cli(app: Flask) -> None:
    @app.cli.command("seed-user")
    @click.option("--email", required=True, help="Account email.")
    @click.option("--password", required=True, help="Account password (min 8 characters).")
    @click.option("--username", default=None, help="Optional username.")
    @click.option("--role", type=click.Choice(["student", "admin"]), default="student", show_default=True)
    def seed_user(email: str, password: str, username: str | None, role: str) -> None:
        """Create a learner account for local testing."""

        from .models import User

        if len(password) < 8:
            raise click.UsageError("Password must be at least 8 characters.")
        with app.app_context():
            db.create_all()
            email = email.lower()
            if User.query.filter_by(email=email).first():
                click.echo(f"User {email} already exists; nothing to do.")
                return
            user = User(
                email=email,
                username=username.lower() if username else None,
                password_hash=hash_password(password),
                role=role,
            )
            db.session.add(user)
            db.session.commit()
            click.echo(f"Created user {email} (id={user.id}).")

    @app.cli.group("usage")
    def usage_group():
        """Daily model usage commands."""

    @usage_group.command("show")
    @click.option("--user-id", type=int, required=True, help="User ID to inspect.")
    @click.option(
        "--date",
        "usage_date",
        type=click.DateTime(formats=["%Y-%m-%d"]),
        help="Usage date (YYYY-MM-DD). Defaults to today.",
    )
    def show_usage(user_id: int, usage_date) -> None:
        """Print the daily token summary for a user."""

        from .models import User
        from .services import quota_service

        with app.app_context():
            if db.session.get(User, user_id) is None:
                raise click.ClickException(f"User {user_id} not found.")
            summary = quota_service.get_usage_summary(
                user_id, usage_date=usage_date.date() if usage_date else None
            )
        for key, value in summary.items():
            click.echo(f"{key}: {value}")

    @app.cli.group("bank")
    def bank_group():
        """Published test bank commands."""

    @bank_group.command("publish")
    @click.argument("test_id")
    @click.option("--unpublish", is_flag=True, help="Withdraw the test from the bank instead.")
    def publish_test(test_id: str, unpublish: bool) -> None:
        """Publish a generated test so matching requests are served from the bank."""

        from .services import bank_service

        with app.app_context():
            record = bank_service.set_published(test_id, not unpublish)
            if record is None:
                raise click.ClickException(f"Test {test_id} not found.")
            state = "published" if record.is_published else "unpublished"
        click.echo(f"Test {test_id} {state}.")
