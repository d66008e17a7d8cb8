from __future__ import annotations
import logging
import os
from importlib import import_module
from flask import Flask
from config import config_map
from extensions import csrf, db, install_sqlite_begin_immediate, login_manager, migrate
from sqlalchemy import inspect
from sqlalchemy.engine import make_url

from blueprints.booking.events import ALL_TOPIC, SlotChannel

def _log_slot_change(change):
    logging.getLogger("gym.slots").info(
        "slot changed",
        extra={"event": "slot_changed", "slot_id": change.slot_id, "action": change.action,
               "date": change.slot_date.isoformat(), "count": change.current_bookings},
    )

def _sqlite_engine_options(app: Flask) -> None:
    url = make_url(app.config["SQLALCHEMY_DATABASE_URI"])
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        # in-memory: Flask-SQLAlchemy сам ставит StaticPool
        return
    opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    connect_args = dict(opts.get("connect_args") or {})
    connect_args.setdefault("check_same_thread", False)
    connect_args.setdefault("timeout", app.config.get("SQLITE_BUSY_TIMEOUT", 15))
    opts["connect_args"] = connect_args
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблица users может ещё не быть создана (alembic upgrade и т.п.)
        if not inspect(db.engine).has_table("users"):
            return

        from seed import ensure_users  # локальный импорт, чтобы избежать циклов
        ensure_users(app.config.get("DEFAULT_USERS", []))

def register_blueprints(app: Flask) -> None:
    # Жёстко импортируем модуль с маршрутами core перед взятием bp
    import_module("blueprints.core.routes")
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import bp as auth_bp, api_bp as auth_api_bp
    from blueprints.booking import bp as booking_bp, api_bp as booking_api_bp
    from blueprints.stats import api_bp as stats_api_bp
    from blueprints.admin import api_bp as admin_api_bp
    from blueprints.reports import api_bp as reports_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(core_api_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(booking_api_bp, url_prefix="/api/v1")
    app.register_blueprint(stats_api_bp, url_prefix="/api/v1")
    app.register_blueprint(admin_api_bp, url_prefix="/api/v1")
    app.register_blueprint(reports_api_bp, url_prefix="/api/v1")

def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # до init_app: Flask-SQLAlchemy создаёт движки именно там
    if overrides:
        app.config.update(overrides)
    _sqlite_engine_options(app)

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    with app.app_context():
        install_sqlite_begin_immediate(db.engine)

    channel = SlotChannel()
    channel.subscribe(ALL_TOPIC, _log_slot_change)
    app.extensions["slot_channel"] = channel

    register_blueprints(app)
    _seed_from_config(app)
    return app
