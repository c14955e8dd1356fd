"""Migrations for the portal schema: users, sessions, jobs, auth_rate_limits, activity_log.

The target database is the same DATABASE_URL the portal connects to at runtime.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

# Migrations run with dev key material unless APP_ENV says otherwise.
os.environ.setdefault("APP_ENV", "dev")
from portal.core.config import settings
from portal.models import Base

config = context.config
if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name)
    except KeyError:
        # alembic.ini carries no [loggers] section; keep the portal's logging as is.
        pass


def _options() -> dict:
    # SQLite cannot ALTER most constraints in place, so column changes there are
    # emitted as copy-and-rename batches.
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_as_batch": settings.DATABASE_URL.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the upgrade as SQL text for a DBA to apply."""
    context.configure(
        url=settings.DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(settings.DATABASE_URL, poolclass=NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
