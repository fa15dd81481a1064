import os
from pathlib import Path

from flask import Flask, g, jsonify, request
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from flippin.config import FlippinConfig
from flippin.errors import FlippinError
from flippin.extensions import cors, db, migrate
from flippin.integrations.payments.factory import payment_health
from flippin.segments.segment_checkout import checkout_bp
from flippin.segments.segment_instant_offers import instant_offers_bp
from flippin.segments.segment_offers import offers_bp
from flippin.segments.segment_transactions import admin_transactions_bp, transactions_bp
from flippin.services.registry import init_services
from flippin.utils.observability import init_sentry, install_request_observers, mark_error


def _resolve_alembic_head() -> str:
    try:
        from alembic.config import Config
        from alembic.script import ScriptDirectory

        migrations_dir = Path(__file__).resolve().parents[1] / "migrations"
        cfg = Config(str(migrations_dir / "alembic.ini"))
        cfg.set_main_option("script_location", str(migrations_dir))
        heads = ScriptDirectory.from_config(cfg).get_heads()
        return heads[0] if heads else "unknown"
    except Exception:
        return "unknown"


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    return max(minimum, min(value, maximum))


def _error_payload(error: str, message: str, status: int) -> dict:
    payload = {"ok": False, "error": error, "message": message, "status": int(status)}
    rid = (getattr(g, "request_id", "") or "").strip()
    if rid:
        payload["trace_id"] = rid
    return payload


def create_app(config: FlippinConfig | None = None, *, settings: dict | None = None, payment_rail=None, email_provider=None):
    """Build the Flask app.

    ``config`` defaults to ``FlippinConfig.from_env()``; ``settings`` are
    Flask config overrides applied before extensions bind (tests pass an
    in-memory database here). ``payment_rail`` and ``email_provider``
    replace the providers the config would select.
    """
    app = Flask(__name__)
    init_sentry(app)

    env = (os.getenv("FLIPPIN_ENV", "dev") or "dev").strip().lower()
    overrides = dict(settings or {})

    if env in ("prod", "production"):
        secret = (os.getenv("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    database_url = (
        overrides.get("SQLALCHEMY_DATABASE_URI")
        or os.getenv("SQLALCHEMY_DATABASE_URI")
        or os.getenv("DATABASE_URL")
    )
    if not database_url:
        if env in ("prod", "production"):
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        instance_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))
        os.makedirs(instance_dir, exist_ok=True)
        database_url = f"sqlite:///{os.path.join(instance_dir, 'flippin.db').replace(os.sep, '/')}"
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url

    engine_options = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite://"):
        engine_options.update(
            {
                "pool_reset_on_return": "rollback",
                "pool_recycle": _env_int("DB_POOL_RECYCLE_SECONDS", 1800, minimum=60, maximum=86400),
                "pool_size": _env_int("DB_POOL_SIZE", 10, minimum=1, maximum=200),
                "max_overflow": _env_int("DB_MAX_OVERFLOW", 20, minimum=0, maximum=500),
                "pool_timeout": _env_int("DB_POOL_TIMEOUT_SECONDS", 30, minimum=1, maximum=300),
            }
        )
        app.logger.info(
            "db_pooling_enabled pool_size=%s max_overflow=%s pool_timeout=%s",
            engine_options["pool_size"],
            engine_options["max_overflow"],
            engine_options["pool_timeout"],
        )
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options
    app.config.update(overrides)

    cors_origins = (os.getenv("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if not origins and env not in ("prod", "production"):
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    db.init_app(app)
    migrate.init_app(app, db)
    install_request_observers(app)

    flippin_config = config or FlippinConfig.from_env()
    init_services(app, flippin_config, payment_rail=payment_rail, email_provider=email_provider)

    @app.errorhandler(FlippinError)
    def _api_flippin_error(error: FlippinError):
        db.session.rollback()
        mark_error(error.code)
        if error.status >= 500:
            app.logger.error("api_error path=%s code=%s message=%s", request.path, error.code, error.message)
        else:
            app.logger.info("api_error path=%s code=%s status=%s", request.path, error.code, error.status)
        payload = error.to_dict()
        payload.update(_error_payload(error.code, error.message, error.status))
        return jsonify(payload), int(error.status)

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        # Keep API failures JSON-only for predictable frontend handling.
        if not request.path.startswith("/api/"):
            return error
        status = int(error.code or 500)
        return jsonify(_error_payload(error.name, error.description or error.name, status)), status

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        mark_error("InternalServerError")
        db.session.rollback()
        return jsonify(_error_payload("InternalServerError", "Internal server error", 500)), 500

    app.register_blueprint(checkout_bp)
    app.register_blueprint(offers_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(admin_transactions_bp)
    app.register_blueprint(instant_offers_bp)

    @app.get("/api/health")
    def health():
        db_state = "ok"
        db_error = None
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            db_state = "fail"
            db_error = str(e)[:300]
        payload = {
            "ok": True,
            "service": "flippin-backend",
            "env": env,
            "db": db_state,
            "payments": payment_health(flippin_config),
            "alembic_head": _resolve_alembic_head(),
        }
        if db_error:
            payload["db_error"] = db_error
        return jsonify(payload)

    return app
