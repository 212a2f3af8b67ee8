"""Alembic environment for the Parabellum schema.

The database URL is resolved like `create_app` does it: `DATABASE_URL` from
the environment or a `.env` file, defaulting to a local SQLite file.
"""
from __future__ import annotations
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from dotenv import load_dotenv
import os, sys

# Allow importing the parabellum package when run from a checkout
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from parabellum.models.identity import Base  # noqa: E402
import parabellum.models.customer  # noqa: E402,F401
import parabellum.models.quote  # noqa: E402,F401
import parabellum.models.audit  # noqa: E402,F401

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///parabellum.db')
config.set_main_option('sqlalchemy.url', DATABASE_URL)

# SQLite cannot ALTER most constraints in place; batch mode recreates tables instead
CONFIGURE_OPTS = dict(target_metadata=Base.metadata, render_as_batch=True, compare_type=True)


def run_migrations_offline():
    context.configure(url=DATABASE_URL, literal_binds=True, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    section = config.get_section(config.config_ini_section) or {}
    section['sqlalchemy.url'] = DATABASE_URL
    connectable = engine_from_config(section, prefix='sqlalchemy.', poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **CONFIGURE_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
