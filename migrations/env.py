import logging
from logging.config import fileConfig

from flask import current_app

from alembic import context

config = context.config

fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')

# Flask-SQLAlchemy >= 3: один движок, одна metadata
target_db = current_app.extensions['migrate'].db
config.set_main_option(
    'sqlalchemy.url',
    target_db.engine.url.render_as_string(hide_password=False).replace('%', '%%'),
)


def run_migrations_offline():
    """SQL-текст без подключения к базе (flask db upgrade --sql)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_db.metadata,
        literal_binds=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    # не создаём пустую ревизию, если схема не изменилась
    def process_revision_directives(context, revision, directives):
        if getattr(config.cmd_opts, 'autogenerate', False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                logger.info('No changes in schema detected.')

    conf_args = current_app.extensions['migrate'].configure_args
    # SQLite не умеет большую часть ALTER TABLE: batch-режим пересоздаёт таблицу
    conf_args.setdefault("render_as_batch", True)
    # тип колонки (Numeric/Float) сравнивается при автогенерации
    conf_args.setdefault("compare_type", True)
    if conf_args.get("process_revision_directives") is None:
        conf_args["process_revision_directives"] = process_revision_directives

    with target_db.engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_db.metadata,
            **conf_args
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
