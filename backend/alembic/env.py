import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Migrations run from backend/, where the application modules live
sys.path.insert(0, os.path.realpath(os.path.join(os.path.dirname(__file__), "..")))

from database import Base, database_url  # noqa: E402
import models.users  # noqa: E402,F401
import models.product  # noqa: E402,F401
import models.stock  # noqa: E402,F401
import models.log  # noqa: E402,F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# An explicit sqlalchemy.url in alembic.ini wins over DATABASE_URL
config.set_main_option(
    "sqlalchemy.url", database_url(config.get_main_option("sqlalchemy.url") or None)
)

target_metadata = Base.metadata


def _configure(**kwargs):
    # SQLite cannot ALTER most columns in place, so always emit batch operations
    context.configure(target_metadata=target_metadata, render_as_batch=True, **kwargs)


def run_migrations_offline() -> None:
    """Emit the migration as SQL without touching a database."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
