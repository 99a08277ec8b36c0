import os
import secrets
import time
from datetime import timedelta
from functools import wraps

from flask import Flask, session, request, current_app
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.errors import RateLimitExceeded
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

# Global extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def _rate_key():
    ip = request.headers.get("X-Forwarded-For") or request.remote_addr or "local"
    token = session.get("rlid") or ""
    path = request.path or "/"
    return f"{ip}|{token}|{path}"


limiter = Limiter(key_func=_rate_key)
cache = Cache()


def _env_flag(name, default):
    return (os.environ.get(name, default) or "").strip().lower() == "true"


def create_app():
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(minutes=30)

    REDIS_URL = os.environ.get("REDIS_URL")
    if REDIS_URL:
        app.config["CACHE_TYPE"] = "RedisCache"
        app.config["CACHE_REDIS_URL"] = REDIS_URL
        app.config["RATELIMIT_STORAGE_URI"] = REDIS_URL
    else:
        app.config["CACHE_TYPE"] = "SimpleCache"
    # Only the admin stats are cached; writes invalidate them explicitly
    app.config["CACHE_DEFAULT_TIMEOUT"] = int(os.environ.get("STATS_CACHE_TIMEOUT", "60"))

    app.config["RATELIMIT_ENABLED"] = _env_flag("RATELIMIT_ENABLED", "true")
    app.config["LOGIN_RATE_LIMIT"] = os.environ.get("LOGIN_RATE_LIMIT", "10 per minute")
    app.config["CSRF_ENABLED"] = _env_flag("CSRF_ENABLED", "true")
    # CSRF token TTL (seconds)
    app.config["CSRF_TOKEN_TTL"] = int(os.environ.get("CSRF_TOKEN_TTL", "7200"))

    app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

    # Database configuration: use DATABASE_URL if provided, else sqlite file
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        db_path = os.path.join(os.path.dirname(__file__), "..", "tracker.db")
        database_url = f"sqlite:///{os.path.abspath(db_path)}"

    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cache.init_app(app)

    login_manager.init_app(app)

    # Import models so they are registered with SQLAlchemy
    from . import models  # noqa: F401

    @app.before_request
    def ensure_rate_key():
        if not session.get("rlid"):
            session["rlid"] = secrets.token_urlsafe(16)

    @login_manager.user_loader
    def load_user(user_id: str):
        from .models import User
        user = db.session.get(User, int(user_id))
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        from .api_utils import api_error
        return api_error("unauthorized", "Login required", 401)

    # Blueprints
    from .main.routes import main_bp
    app.register_blueprint(main_bp)

    from .admin import admin_bp
    app.register_blueprint(admin_bp, url_prefix="/admin")

    from .grading import grading_bp
    app.register_blueprint(grading_bp, url_prefix="/grades")

    from .schedule import schedule_bp
    app.register_blueprint(schedule_bp, url_prefix="/schedule")

    from .planner import planner_bp
    app.register_blueprint(planner_bp, url_prefix="/planner")

    from .errors import ValidationError

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        from .api_utils import api_error
        return api_error(e.code, e.message, 400)

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(e):
        from .api_utils import api_error
        return api_error("rate_limited", "Too many requests", 429)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        from .api_utils import api_error
        return api_error(str(e.code), e.description or "", e.code)

    # Create tables on first run (dev convenience)
    with app.app_context():
        db.create_all()

    return app


def issue_csrf_token():
    """Return the session CSRF token, regenerating it when missing or expired."""
    token = session.get("csrf_token")
    issued_at = session.get("csrf_token_issued_at")
    ttl = current_app.config.get("CSRF_TOKEN_TTL", 7200)
    now = int(time.time())
    if (not token) or (not issued_at) or (ttl > 0 and (now - int(issued_at)) > ttl):
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
        session["csrf_token_issued_at"] = now
    return token


def csrf_required(view_func):
    @wraps(view_func)
    def _wrapped(*args, **kwargs):
        if not current_app.config.get("CSRF_ENABLED", True):
            return view_func(*args, **kwargs)
        method = (request.method or "GET").upper()
        if method in ("POST", "PUT", "PATCH", "DELETE"):
            from .api_utils import api_error
            token = (request.headers.get("X-CSRF-Token") or request.form.get("csrf_token") or "").strip()
            sess_token = session.get("csrf_token") or ""
            issued_at = session.get("csrf_token_issued_at")
            ttl = current_app.config.get("CSRF_TOKEN_TTL", 7200)
            now = int(time.time())
            # Expired token
            if not issued_at or (ttl > 0 and (now - int(issued_at)) > ttl):
                return api_error("csrf_expired", "Refresh the page or login again", 400)
            # Missing token in request
            if not token:
                return api_error("csrf_missing", "Refresh the page or login again", 400)
            # Mismatch
            if not secrets.compare_digest(token, sess_token):
                return api_error("csrf_invalid", "Refresh the page or login again", 400)
        return view_func(*args, **kwargs)
    return _wrapped
