from logging.config import fileConfig
from alembic import context
from flask import current_app, has_app_context
import os
import sys

# --- корень репозитория в sys.path, чтобы работал `from app import create_app`
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

config = context.config

if config.config_file_name is not None and os.path.exists(config.config_file_name):
    fileConfig(config.config_file_name)

from extensions import db  # noqa: E402

# `flask db ...` уже даёт контекст приложения; у голого `alembic` его нет
if not has_app_context():
    from app import create_app  # noqa: E402
    create_app(os.getenv("FLASK_CONFIG")).app_context().push()

engine = db.engine
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False).replace("%", "%%"))

target_metadata = db.metadata
current_app.logger.debug("migrating %s", engine.url.render_as_string(hide_password=True))

def run_migrations_offline():
    """Offline: только SQL, без подключения."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # SQLite
    )
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,  # SQLite
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
