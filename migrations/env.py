# migrations/env.py
from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from payroll_api.wsgi import app as flask_app

config = context.config
if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except (KeyError, ValueError):
        # alembic.ini without logging sections
        pass
log = logging.getLogger("alembic.env")

with flask_app.app_context():
    db = flask_app.extensions["migrate"].db
    db_uri = flask_app.config["SQLALCHEMY_DATABASE_URI"]
    target_metadata = db.metadata

config.set_main_option("sqlalchemy.url", db_uri.replace("%", "%%"))
IS_SQLITE = db_uri.startswith("sqlite")


def _skip_empty_autogenerate(ctx, revision, directives):
    if getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            log.info("No schema changes detected; no revision written.")


def _configure(**kw):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=IS_SQLITE,
        process_revision_directives=_skip_empty_autogenerate,
        **kw,
    )


def run_migrations_offline() -> None:
    _configure(url=db_uri, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(connection=connection)
        with flask_app.app_context():
            with context.begin_transaction():
                context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
