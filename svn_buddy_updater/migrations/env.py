import asyncio
import logging
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context
from alembic.operations import MigrationScript
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from svn_buddy_updater.settings.db import get_db_settings
from svn_buddy_updater.db.models import BaseModel

config = context.config
logger = logging.getLogger("alembic.env")

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = BaseModel.metadata
# DSN comes from DB_* env variables (alembic.ini keeps no credentials)
config.set_main_option("sqlalchemy.url", get_db_settings().database_dsn)


def process_revision_directives(
    migration_context: MigrationContext,
    revision: tuple[str, str],
    directives: list[MigrationScript],
) -> None:
    """
    Numbers autogenerated revisions sequentially:
        0001_releases.py
        0002_<message>.py
        ...
    """
    migration_script = directives[0]
    if migration_script.upgrade_ops is not None and migration_script.upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No changes in schema detected.")
        return

    head_revision = ScriptDirectory.from_config(config).get_current_head()
    new_rev_id = int(head_revision.lstrip("0")) + 1 if head_revision else 1
    migration_script.rev_id = f"{new_rev_id:04}"


def configure_context(**kwargs) -> None:  # type: ignore
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        process_revision_directives=process_revision_directives,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emits SQL to the script output instead of executing it (`alembic upgrade --sql`)"""
    configure_context(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    configure_context(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
