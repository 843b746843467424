import pathlib

from sqlalchemy.ext.asyncio import create_async_engine

from casino.load_secrets import sqlite_path


def create_sqlite_engine(file_path: str | pathlib.Path | None = None):
    """SQLite engine for local runs and tests."""
    if file_path is None:
        file_path = pathlib.Path(__file__).parents[1] / sqlite_path
    sqlite_url = f"sqlite+aiosqlite:///{file_path}"
    return create_async_engine(url=sqlite_url, echo=False)
