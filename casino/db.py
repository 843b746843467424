from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from casino.create_postgres_engine import create_postgres_engine
from casino.create_sqlite_engine import create_sqlite_engine
from casino.load_secrets import db_backend
from casino.models.schemas import Base


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )


if db_backend == "sqlite":
    engine = create_sqlite_engine()
else:
    engine = create_postgres_engine()

# Centralized session factory to avoid creating it in router modules.
Session = make_session_factory(engine)


async def create_tables(target: AsyncEngine = engine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
