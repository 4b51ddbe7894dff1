"""
Alembic environment for the objective graph schema.

Migrations run through the same `Database` handle the service uses, with a
NullPool engine. The target URL comes from `-x url=...` when given, otherwise
from settings (`DATABASE_URL`).
"""
import asyncio
from logging.config import fileConfig

from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

from alembic import context

from visium.config import get_settings
from visium.db.client import Database
from visium.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def resolve_url() -> str:
    url = context.get_x_argument(as_dictionary=True).get("url") or str(get_settings().database_url)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _configure(**kwargs) -> None:
    url = kwargs.get("url") or resolve_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without connecting."""
    _configure(url=resolve_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    database = Database(resolve_url(), engine_kwargs={"poolclass": NullPool})
    await database.open()
    try:
        async with database.engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await database.close()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
