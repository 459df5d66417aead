# Overview: Alembic environment bound to the cashpoint Flask app's engine and metadata.

import logging
from logging.config import fileConfig

from flask import current_app

from alembic import context

config = context.config

# Alembic/Flask-Migrate loggers come from alembic.ini
fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')


def get_engine():
    return current_app.extensions['migrate'].db.engine


def get_engine_url():
    return get_engine().url.render_as_string(hide_password=False).replace('%', '%%')


config.set_main_option('sqlalchemy.url', get_engine_url())
target_db = current_app.extensions['migrate'].db


def get_metadata():
    # Every table (users, catalog, transactions, settings) registers on this metadata
    # when cashpoint.models is imported by create_app().
    return target_db.metadata


def run_migrations_offline():
    """Emit SQL for `flask db upgrade --sql` without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=get_metadata(),
        literal_binds=True,
        **current_app.extensions['migrate'].configure_args
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations against the app's engine."""

    def skip_empty_autogenerate(context, revision, directives):
        if getattr(config.cmd_opts, 'autogenerate', False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                logger.info('No schema changes detected; no revision written.')

    conf_args = dict(current_app.extensions['migrate'].configure_args)
    conf_args.setdefault("process_revision_directives", skip_empty_autogenerate)

    with get_engine().connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=get_metadata(),
            **conf_args
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
