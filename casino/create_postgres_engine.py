from sqlalchemy import URL
from sqlalchemy.ext.asyncio import create_async_engine
from casino.load_secrets import user, password, host, port, db_name

POSTGRES_DATABASE_URL = URL.create(
    "postgresql+asyncpg",
    username=user,
    password=password,
    host=host,
    port=int(port) if port else None,
    database=db_name,
)


def create_postgres_engine():
    return create_async_engine(POSTGRES_DATABASE_URL, pool_size=20, max_overflow=20)
