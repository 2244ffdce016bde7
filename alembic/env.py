"""Alembic environment configuration for async databases with SQLModel."""

from __future__ import annotations

import asyncio
from logging.config import fileConfig
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from alembic.script import ScriptDirectory
from sqlmodel import SQLModel

# Load environment variables from .env file
load_dotenv()

# Import all models so Alembic can detect them
from emoset.db.config import get_database_url
from emoset.db.models import AudioFile, AudioVersion, User

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

config.set_main_option("sqlalchemy.url", get_database_url())


def get_next_revision_number() -> str:
    """Get the next sequential revision number based on existing migrations."""
    script_dir = ScriptDirectory.from_config(config)
    versions_dir = Path(script_dir.versions)

    existing_numbers = []
    for filepath in versions_dir.glob("*.py"):
        parts = filepath.stem.split("_", 1)
        if parts[0].isdigit():
            existing_numbers.append(int(parts[0]))

    next_num = max(existing_numbers, default=0) + 1
    return f"{next_num:03d}"


def process_revision_directives(context, revision, directives):
    """Auto-generate sequential revision IDs."""
    if config.cmd_opts and config.cmd_opts.autogenerate:
        script = directives[0]
        if script.upgrade_ops.is_empty():
            # No changes detected, don't generate migration
            directives[:] = []
        else:
            script.rev_id = get_next_revision_number()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        process_revision_directives=process_revision_directives,
        render_as_batch=url is not None and url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Run migrations with the given connection."""
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        process_revision_directives=process_revision_directives,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in async mode."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode using async engine."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
