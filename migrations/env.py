import asyncio
from logging.config import fileConfig
import sys
from pathlib import Path

from dotenv import load_dotenv

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

# 1. Project root on the path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

# 2. DATABASE_URL may live in .env
load_dotenv()

from opensea_wrapper.core.config import Settings

config = context.config

# 3. Settings win over alembic.ini
config.set_main_option("sqlalchemy.url", Settings().DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# -------------------- [ Models ] --------------------
# Importing the models registers their tables on Base.metadata
from opensea_wrapper.db.base import Base
from opensea_wrapper.models.event import Event  # noqa: F401

target_metadata = Base.metadata
# -------------------- [ Models end ] --------------------


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
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


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
