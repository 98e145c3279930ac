from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def _prepare_sqlite_storage(database_url: str) -> None:
    url = make_url(database_url)
    if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


_prepare_sqlite_storage(settings.database_url)

engine = create_async_engine(settings.database_url, echo=False)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db():
    """建表，并按配置写入示例数据"""
    from app import tables  # noqa: F401  注册表结构

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.load_sample_data:
        from app.sample_data import seed_example_servers

        await seed_example_servers()
